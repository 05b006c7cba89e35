"""Application interfaces (ports). No runtime imports from infrastructure."""

from mailcascade.application.interfaces.services import IAccessTokenProvider, IEmailSender

__all__ = ["IAccessTokenProvider", "IEmailSender"]
