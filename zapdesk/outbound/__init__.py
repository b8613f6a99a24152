# zapdesk/outbound/__init__.py
from .gateway import (
    ConnectionStatus,
    ProviderError,
    ProviderNetworkError,
    QrAlreadyConnected,
    QrImage,
    QrResult,
    QrUnavailable,
    WhatsAppProvider,
)
from .settings import ProviderConfig
from .zapi import ZAPIProvider
from .ultramsg import UltraMsgProvider
