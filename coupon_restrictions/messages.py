import gettext
from typing import Callable, Dict, Optional

from .config import Settings, settings
from .models import AddressType, Coupon, RestrictionReason, ValidationOutcome

RemovedMessageHook = Callable[[str], str]
MessageWithCodeHook = Callable[[str, str, Coupon], str]


def N_(message: str) -> str:
    # marks a string for extraction, translated later
    return message


CHECKOUT_TEMPLATES: Dict[RestrictionReason, str] = {
    RestrictionReason.NEW_CUSTOMER: N_('Sorry, coupon code "{code}" is only valid for new customers.'),
    RestrictionReason.EXISTING_CUSTOMER: N_('Sorry, coupon code "{code}" is only valid for existing customers.'),
    RestrictionReason.COUNTRY: N_('Sorry, coupon code "{code}" is not valid in your {address_type} country.'),
    RestrictionReason.POSTCODE: N_('Sorry, coupon code "{code}" is not valid in your {address_type} zip code.'),
}

SESSION_TEMPLATES: Dict[RestrictionReason, str] = {
    RestrictionReason.NEW_CUSTOMER: N_("Sorry, this coupon is only valid for new customers."),
    RestrictionReason.EXISTING_CUSTOMER: N_("Sorry, this coupon is only valid for existing customers."),
    RestrictionReason.COUNTRY: N_("Sorry, this coupon is not valid in your country."),
    RestrictionReason.POSTCODE: N_("Sorry, this coupon is not valid in your zip code."),
}

ADDRESS_TYPE_LABELS: Dict[AddressType, str] = {
    AddressType.BILLING: N_("billing"),
    AddressType.SHIPPING: N_("shipping"),
}


def load_translations(config: Settings) -> gettext.NullTranslations:
    languages = [config.language] if config.language else None
    return gettext.translation(
        config.translation_domain,
        localedir=config.locale_dir,
        languages=languages,
        fallback=True,
    )


class MessageCatalog:
    """
    Renders rejection messages for each restriction reason.

    removed_message rewrites the generic message shown when a coupon fails
    before checkout; message_with_code rewrites the message shown when a
    coupon is removed at checkout and also receives the code and coupon.
    """

    def __init__(
        self,
        translations: Optional[gettext.NullTranslations] = None,
        removed_message: Optional[RemovedMessageHook] = None,
        message_with_code: Optional[MessageWithCodeHook] = None,
    ):
        self.translations = translations or load_translations(settings)
        self.removed_message = removed_message
        self.message_with_code = message_with_code

    def _(self, message: str) -> str:
        return self.translations.gettext(message)

    def address_label(self, address_type: Optional[AddressType]) -> str:
        return self._(ADDRESS_TYPE_LABELS[address_type or AddressType.SHIPPING])

    def session_message(self, outcome: ValidationOutcome) -> Optional[str]:
        template = SESSION_TEMPLATES.get(outcome.reason)
        if template is None:
            return None
        msg = self._(template)
        if self.removed_message is not None:
            msg = self.removed_message(msg)
        return msg

    def checkout_message(self, coupon: Coupon, outcome: ValidationOutcome) -> Optional[str]:
        template = CHECKOUT_TEMPLATES.get(outcome.reason)
        if template is None:
            return None
        msg = self._(template).format(
            code=coupon.code,
            address_type=self.address_label(outcome.addressType),
        )
        if self.message_with_code is not None:
            msg = self.message_with_code(msg, coupon.code, coupon)
        return msg
