"""WhatsApp message bodies sent to customers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple
from urllib.parse import quote

from dotenv import load_dotenv

DEFAULT_APP_URL = "https://starspin.netlify.app"
DEFAULT_LANGUAGE = "fr"
SPIN_URL_PLACEHOLDER = "{{spin_url}}"

CTA_TEXTS: Dict[str, str] = {
    "fr": "👉 Tournez la roue maintenant",
    "en": "👉 Spin the wheel now",
    "es": "👉 Gira la rueda ahora",
    "pt": "👉 Gire a roda agora",
    "de": "👉 Drehen Sie jetzt das Rad",
    "it": "👉 Gira la ruota ora",
}

CONGRATULATION_MESSAGES: Dict[str, Callable[[str, str], str]] = {
    "fr": lambda prize, url: (
        f"🎉 FÉLICITATIONS ! 🎉\n\nVous avez gagné : *{prize}* !\n\n"
        "🎁 Cliquez sur le lien ci-dessous pour afficher votre coupon avec le QR code et le timer :\n\n"
        f"{url}\n\n⏰ Attention : votre coupon expire dans 24h !"
    ),
    "en": lambda prize, url: (
        f"🎉 CONGRATULATIONS! 🎉\n\nYou won: *{prize}*!\n\n"
        "🎁 Click the link below to view your coupon with QR code and timer:\n\n"
        f"{url}\n\n⏰ Warning: your coupon expires in 24h!"
    ),
    "es": lambda prize, url: (
        f"🎉 ¡FELICIDADES! 🎉\n\nHas ganado: *{prize}*!\n\n"
        "🎁 Haz clic en el enlace para ver tu cupón con código QR y temporizador:\n\n"
        f"{url}\n\n⏰ ¡Atención: tu cupón expira en 24h!"
    ),
    "pt": lambda prize, url: (
        f"🎉 PARABÉNS! 🎉\n\nVocê ganhou: *{prize}*!\n\n"
        "🎁 Clique no link para ver seu cupom com QR code e timer:\n\n"
        f"{url}\n\n⏰ Atenção: seu cupom expira em 24h!"
    ),
    "de": lambda prize, url: (
        f"🎉 HERZLICHEN GLÜCKWUNSCH! 🎉\n\nSie haben gewonnen: *{prize}*!\n\n"
        "🎁 Klicken Sie auf den Link, um Ihren Coupon mit QR-Code und Timer anzuzeigen:\n\n"
        f"{url}\n\n⏰ Achtung: Ihr Coupon läuft in 24h ab!"
    ),
    "it": lambda prize, url: (
        f"🎉 CONGRATULAZIONI! 🎉\n\nHai vinto: *{prize}*!\n\n"
        "🎁 Clicca sul link per visualizzare il tuo coupon con QR code e timer:\n\n"
        f"{url}\n\n⏰ Attenzione: il tuo coupon scade tra 24h!"
    ),
}


NEW_CLIENT_MESSAGES: Dict[str, Dict[str, str]] = {
    "fr": {
        "header": "🎉 Bienvenue !",
        "body": (
            "Merci pour votre avis ! Votre carte fidélité a été créée avec des points "
            "de bienvenue offerts !\n\n🎰 Tournez la roue pour gagner un cadeau\n"
            "🎁 Consultez votre carte fidélité"
        ),
    },
    "en": {
        "header": "🎉 Welcome!",
        "body": (
            "Thank you for your review! Your loyalty card has been created with welcome "
            "points!\n\n🎰 Spin the wheel to win a gift\n🎁 Check your loyalty card"
        ),
    },
    "th": {
        "header": "🎉 ยินดีต้อนรับ!",
        "body": (
            "ขอบคุณสำหรับรีวิว! บัตรสมาชิกของคุณถูกสร้างแล้วพร้อมแต้มต้อนรับ!\n\n"
            "🎰 หมุนวงล้อเพื่อรับของรางวัล\n🎁 ตรวจสอบบัตรสมาชิกของคุณ"
        ),
    },
    "es": {
        "header": "🎉 ¡Bienvenido!",
        "body": (
            "¡Gracias por tu opinión! Tu tarjeta de fidelidad ha sido creada con puntos "
            "de bienvenida!\n\n🎰 Gira la rueda para ganar un regalo\n"
            "🎁 Consulta tu tarjeta de fidelidad"
        ),
    },
    "pt": {
        "header": "🎉 Bem-vindo!",
        "body": (
            "Obrigado pela sua avaliação! Seu cartão fidelidade foi criado com pontos de "
            "boas-vindas!\n\n🎰 Gire a roda para ganhar um presente\n"
            "🎁 Consulte seu cartão fidelidade"
        ),
    },
}

RETURNING_CLIENT_MESSAGES: Dict[str, Tuple[str, Callable[[int], str]]] = {
    "fr": (
        "👋 Bon retour !",
        lambda points: (
            f"Merci pour votre visite ! Vous avez {points} points sur votre carte fidélité."
            "\n\n🎰 Tournez la roue pour gagner un cadeau\n🎁 Consultez votre solde et récompenses"
        ),
    ),
    "en": (
        "👋 Welcome back!",
        lambda points: (
            f"Thank you for your visit! You have {points} points on your loyalty card."
            "\n\n🎰 Spin the wheel to win a gift\n🎁 Check your balance and rewards"
        ),
    ),
    "th": (
        "👋 ยินดีต้อนรับกลับ!",
        lambda points: (
            f"ขอบคุณสำหรับการมาเยี่ยมชม! คุณมี {points} แต้มในบัตรสมาชิก"
            "\n\n🎰 หมุนวงล้อเพื่อรับของรางวัล\n🎁 ตรวจสอบยอดแต้มและรางวัล"
        ),
    ),
    "es": (
        "👋 ¡Bienvenido de nuevo!",
        lambda points: (
            f"¡Gracias por tu visita! Tienes {points} puntos en tu tarjeta."
            "\n\n🎰 Gira la rueda para ganar un regalo\n🎁 Consulta tu saldo y recompensas"
        ),
    ),
    "pt": (
        "👋 Bem-vindo de volta!",
        lambda points: (
            f"Obrigado pela sua visita! Você tem {points} pontos no seu cartão."
            "\n\n🎰 Gire a roda para ganhar um presente\n🎁 Consulte seu saldo e recompensas"
        ),
    ),
}

# WhatsApp caps button titles at 25 characters and headers at 60.
BUTTON_TEXTS: Dict[str, Tuple[str, str]] = {
    "fr": ("Tourner la Roue 🎰", "Ma Carte 🎁"),
    "en": ("Spin the Wheel 🎰", "My Card 🎁"),
    "th": ("หมุนวงล้อ 🎰", "บัตรของฉัน 🎁"),
    "es": ("Girar Rueda 🎰", "Mi Tarjeta 🎁"),
    "pt": ("Girar Roda 🎰", "Meu Cartão 🎁"),
}
MAX_BUTTON_TITLE = 25
MAX_HEADER_LENGTH = 60
MESSAGE_FOOTER = "⭐ StarSpin"


@dataclass(frozen=True)
class CombinedMessage:
    """Welcome message carrying a spin link and a loyalty card link."""

    header: str
    body: str
    footer: str
    spin_button: str
    spin_url: str
    card_button: str
    card_url: str

    def as_text(self) -> str:
        """Plain text rendering for gateways that reject button messages."""
        return (
            f"{self.header}\n\n{self.body}\n\n"
            f"👉 {self.spin_button}\n{self.spin_url}\n\n"
            f"👉 {self.card_button}\n{self.card_url}\n\n"
            f"{self.footer}"
        )


def app_url(base_url: Optional[str] = None) -> str:
    """Public base URL of the customer-facing app, without a trailing slash."""
    if base_url is None:
        load_dotenv()
        base_url = os.getenv("STARSPIN_APP_URL", DEFAULT_APP_URL)
    return base_url.rstrip("/")


def spin_url(
    merchant_public_id: str,
    phone: Optional[str] = None,
    base_url: Optional[str] = None,
    language: Optional[str] = None,
) -> str:
    url = f"{app_url(base_url)}/spin/{merchant_public_id}"
    params = []
    if phone:
        params.append(f"phone={quote(phone, safe='')}")
    if language:
        params.append(f"lang={quote(language, safe='')}")
    if params:
        url += "?" + "&".join(params)
    return url


def coupon_url(merchant_public_id: str, code: str, base_url: Optional[str] = None) -> str:
    return f"{app_url(base_url)}/coupon/{merchant_public_id}?code={quote(code, safe='')}"


def invitation_message(
    business_name: str,
    url: str,
    language: str = DEFAULT_LANGUAGE,
    template: Optional[str] = None,
) -> str:
    """Message inviting a customer to spin after leaving feedback.

    A merchant ``template`` replaces the default text; every
    ``{{spin_url}}`` in it is substituted with ``url``.
    """
    if template:
        return template.replace(SPIN_URL_PLACEHOLDER, url)
    cta = CTA_TEXTS.get(language, CTA_TEXTS[DEFAULT_LANGUAGE])
    return (
        f"🎉 *{business_name}*\n\n"
        "Merci pour votre avis ! Vous avez maintenant une chance de gagner un cadeau "
        "en tournant notre roue de la fortune.\n\n"
        f"{cta}\n{url}\n\n🎰 Bonne chance !"
    )


def congratulation_message(prize_name: str, url: str, language: str = DEFAULT_LANGUAGE) -> str:
    build = CONGRATULATION_MESSAGES.get(language, CONGRATULATION_MESSAGES[DEFAULT_LANGUAGE])
    return build(prize_name, url)


def card_url(qr_code_data: str, base_url: Optional[str] = None) -> str:
    return f"{app_url(base_url)}/card/{quote(qr_code_data, safe='')}"


def combined_message(
    business_name: str,
    *,
    is_new_client: bool,
    points: int,
    spin_link: str,
    card_link: str,
    language: str = DEFAULT_LANGUAGE,
) -> CombinedMessage:
    """Build the welcome sent once a loyalty card is created or found.

    New clients get the welcome text; returning clients see their balance.
    """
    if is_new_client:
        template = NEW_CLIENT_MESSAGES.get(language, NEW_CLIENT_MESSAGES[DEFAULT_LANGUAGE])
        header, body = template["header"], template["body"]
    else:
        header, build = RETURNING_CLIENT_MESSAGES.get(
            language, RETURNING_CLIENT_MESSAGES[DEFAULT_LANGUAGE]
        )
        body = build(points)
    spin_button, card_button = BUTTON_TEXTS.get(language, BUTTON_TEXTS[DEFAULT_LANGUAGE])
    return CombinedMessage(
        header=f"{header} - {business_name}"[:MAX_HEADER_LENGTH],
        body=body,
        footer=MESSAGE_FOOTER,
        spin_button=spin_button[:MAX_BUTTON_TITLE],
        spin_url=spin_link,
        card_button=card_button[:MAX_BUTTON_TITLE],
        card_url=card_link,
    )


__all__ = [
    "BUTTON_TEXTS",
    "CONGRATULATION_MESSAGES",
    "CTA_TEXTS",
    "CombinedMessage",
    "NEW_CLIENT_MESSAGES",
    "RETURNING_CLIENT_MESSAGES",
    "app_url",
    "card_url",
    "combined_message",
    "congratulation_message",
    "coupon_url",
    "invitation_message",
    "spin_url",
]
