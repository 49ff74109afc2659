import os
from decimal import Decimal, InvalidOperation
from typing import List

class Settings:
    def _split_csv(self, raw: str, *, default: List[str]) -> List[str]:
        parts = [p.strip() for p in (raw or "").split(",")]
        return [p for p in parts if p] or default

    def _decimal(self, raw: str, *, default: Decimal) -> Decimal:
        try:
            v = Decimal((raw or "").strip())
        except InvalidOperation:
            return default
        return v if v > 0 else default

    def __init__(self) -> None:
        self.env = os.getenv('APP_ENV', 'local')
        self.api_version = os.getenv("APP_VERSION", "0.1.0").strip() or "0.1.0"
        # Comma-separated list of allowed CORS origins for the till / back-office clients.
        self.cors_origins = self._split_csv(
            os.getenv("CORS_ORIGINS", "").strip(),
            default=["http://localhost:3000", "http://127.0.0.1:3000"],
        )
        # Smallest money unit shown to clients. Calculators never round internally.
        self.money_quantum = self._decimal(os.getenv("MONEY_QUANTUM", ""), default=Decimal("0.01"))
        self.invoice_prefix = (os.getenv("INVOICE_PREFIX") or "INV").strip() or "INV"
        # Only the in-memory stores ship with this package; real backends plug in via deps.
        self.store_backend = (os.getenv("STORE_BACKEND") or "memory").strip().lower()

    @property
    def expose_errors(self) -> bool:
        return self.env in {"local", "dev"}

settings = Settings()
