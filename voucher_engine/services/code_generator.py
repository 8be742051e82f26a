from __future__ import annotations

import logging
import re
import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from jose import JWTError, jwt

from voucher_engine.config import Settings, get_settings
from voucher_engine.errors import ValidationError
from voucher_engine.models.enums import VoucherCodeType


logger = logging.getLogger(__name__)


STATIC_CODE_PATTERN = re.compile(r"^[A-Z0-9]{4,20}$")

# QR tokens outlive any sane voucher; the voucher enforces its own window.
QR_TOKEN_LIFETIME_SECONDS = 365 * 24 * 60 * 60


@dataclass
class GeneratedCode:
    code: str
    type: VoucherCodeType
    metadata: dict[str, Any] = field(default_factory=dict)


class CodeGenerator:
    def __init__(self, secret: str, algorithm: str = "HS256", short_code_length: int = 8, alphabet: str = ""):
        if not secret:
            raise ValueError("a signing secret is required")
        if short_code_length < 4:
            raise ValueError("short codes must be at least 4 characters")
        self.secret = secret
        self.algorithm = algorithm
        self.short_code_length = short_code_length
        self.alphabet = alphabet or "23456789ABCDEFGHJKLMNPQRSTUVWXYZ"

    def generate_qr_code(self, voucher_id) -> str:
        now = int(time.time())
        payload = {
            "type": "voucher",
            "vid": str(voucher_id),  # short claim names keep the QR small
            "iat": now,
            "exp": now + QR_TOKEN_LIFETIME_SECONDS,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode_qr_code(self, token: str) -> str:
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError as exc:
            raise ValidationError("Invalid QR code", {"reason": str(exc)}) from exc
        if payload.get("type") != "voucher" or not payload.get("vid"):
            raise ValidationError("Invalid QR code", {"reason": "not a voucher token"})
        return payload["vid"]

    def generate_short_code(self) -> str:
        return "".join(secrets.choice(self.alphabet) for _ in range(self.short_code_length))

    def validate_short_code(self, code: str) -> bool:
        return len(code) == self.short_code_length and all(c in self.alphabet for c in code)

    @staticmethod
    def validate_static_code(code: str) -> str:
        if not code or not STATIC_CODE_PATTERN.match(code):
            raise ValidationError(
                "Static code must be 4-20 characters, uppercase letters and numbers only",
                {"static_code": code},
            )
        return code

    def generate_codes(
        self,
        voucher_id,
        *,
        generate_qr: bool = True,
        generate_short_code: bool = True,
        static_code: str | None = None,
    ) -> list[GeneratedCode]:
        generated_at = datetime.now(timezone.utc).isoformat()
        codes: list[GeneratedCode] = []

        if generate_qr:
            token = self.generate_qr_code(voucher_id)
            codes.append(
                GeneratedCode(
                    code=token,
                    type=VoucherCodeType.QR,
                    metadata={"algorithm": self.algorithm, "generated_at": generated_at},
                )
            )
            logger.debug("generated QR code", extra={"voucher_id": str(voucher_id), "token_length": len(token)})

        if generate_short_code:
            short = self.generate_short_code()
            codes.append(
                GeneratedCode(
                    code=short,
                    type=VoucherCodeType.SHORT,
                    metadata={"length": len(short), "generated_at": generated_at},
                )
            )

        if static_code is not None:
            codes.append(
                GeneratedCode(
                    code=self.validate_static_code(static_code),
                    type=VoucherCodeType.STATIC,
                    metadata={"user_provided": True, "generated_at": generated_at},
                )
            )

        return codes


def build_code_generator(settings: Settings) -> CodeGenerator | None:
    if not settings.voucher_jwt_secret:
        return None
    return CodeGenerator(
        secret=settings.voucher_jwt_secret,
        algorithm=settings.voucher_jwt_algorithm,
        short_code_length=settings.voucher_short_code_length,
        alphabet=settings.voucher_code_alphabet,
    )


def get_code_generator() -> CodeGenerator | None:
    return build_code_generator(get_settings())
