# app/services/payment/provider_factory.py
import logging
from typing import Dict, Optional

from app.core.config import settings
from .provider_interface import PaymentProviderInterface
from .providers.stripe_provider import StripeProvider, StripeConfig

logger = logging.getLogger(__name__)


# Currency to provider routing configuration
PROVIDER_ROUTING: Dict[str, str] = {
    "AUD": "stripe",
    "USD": "stripe",
    "EUR": "stripe",
    "GBP": "stripe",
    "CAD": "stripe",
    "NZD": "stripe",
    "SGD": "stripe",
}

DEFAULT_PROVIDER = "stripe"


class PaymentProviderFactory:
    """
    Factory for creating and managing payment provider instances.

    Routes by currency; unknown currencies fall back to the default provider.
    """

    def __init__(self):
        self._providers: Dict[str, PaymentProviderInterface] = {}
        self._initialize_providers()

    def _initialize_providers(self) -> None:
        """Initialize all configured payment providers."""
        if settings.STRIPE_SECRET_KEY and settings.STRIPE_PUBLISHABLE_KEY:
            config = StripeConfig(
                secret_key=settings.STRIPE_SECRET_KEY,
                publishable_key=settings.STRIPE_PUBLISHABLE_KEY,
                api_version=settings.STRIPE_API_VERSION,
                max_retries=settings.STRIPE_MAX_NETWORK_RETRIES,
            )
            self._providers["stripe"] = StripeProvider(config)
            logger.info("Stripe payment provider initialized")
        else:
            logger.warning(
                "Stripe provider not initialized: missing environment variables"
            )

    def get_provider(self, code: str) -> PaymentProviderInterface:
        """
        Get a payment provider by its code.

        Raises:
            ValueError: If provider is not available
        """
        provider = self._providers.get(code)
        if not provider:
            raise ValueError(f"Payment provider '{code}' is not available")
        return provider

    def get_provider_for_currency(self, currency: str) -> PaymentProviderInterface:
        provider_code = PROVIDER_ROUTING.get(currency.upper(), DEFAULT_PROVIDER)
        try:
            return self.get_provider(provider_code)
        except ValueError:
            # Fall back to default
            return self.get_provider(DEFAULT_PROVIDER)


# Global factory instance (singleton pattern)
_factory_instance: Optional[PaymentProviderFactory] = None


def get_payment_provider_factory() -> PaymentProviderFactory:
    """Get the global payment provider factory instance."""
    global _factory_instance
    if _factory_instance is None:
        _factory_instance = PaymentProviderFactory()
    return _factory_instance


def get_payment_provider(code: str = DEFAULT_PROVIDER) -> PaymentProviderInterface:
    """Convenience function to get a payment provider by code."""
    return get_payment_provider_factory().get_provider(code)


def get_provider_for_currency(currency: str) -> PaymentProviderInterface:
    """Get the appropriate payment provider for an ISO 4217 currency."""
    return get_payment_provider_factory().get_provider_for_currency(currency)
