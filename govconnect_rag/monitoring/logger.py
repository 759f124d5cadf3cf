"""
Service Logger
Logging for the retrieval service: secret masking, console + daily file
handlers and retrieval-specific helpers.
"""

import json
import logging
import os
import re
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

QUERY_LOG_PREVIEW = 50


class SensitiveDataFilter(logging.Filter):
    """
    Logging filter that masks API keys and other secrets.

    Masked:
    - Gemini / Google API Key (AIza...)
    - OpenAI API Key (sk-...)
    - Bearer tokens
    - Generic api_key / token / secret / password assignments
    """

    PATTERNS = [
        # Gemini / Google API Key
        (r"AIza[0-9A-Za-z_\-]{30,}", "AIza****"),
        # OpenAI API Key
        (r"sk-[a-zA-Z0-9_\-]{20,}", "sk-****"),
        # Matches: api_key=xxx, apiKey: "xxx", token='xxx', password=xxx
        (
            r'(?i)(api[_-]?key|token|secret|password)["\']?\s*[:=]\s*["\']?([a-zA-Z0-9_\-]{16,})["\']?',
            r"\1=****",
        ),
        (r"Bearer\s+[a-zA-Z0-9_\-\.]{20,}", "Bearer ****"),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        """
        Mask secrets in the record message and its formatting args.

        Returns:
            True (the record always passes, only its text is rewritten)
        """
        if record.msg:
            record.msg = self._mask_value(str(record.msg))

        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._mask_value(v) for k, v in record.args.items()}
            elif isinstance(record.args, tuple):
                record.args = tuple(self._mask_value(arg) for arg in record.args)

        return True

    def _mask_value(self, value: Any) -> Any:
        if isinstance(value, str):
            for pattern, replacement in self.PATTERNS:
                value = re.sub(pattern, replacement, value)
        elif isinstance(value, dict):
            return {k: self._mask_value(v) for k, v in value.items()}
        elif isinstance(value, (list, tuple)):
            return type(value)(self._mask_value(item) for item in value)
        return value


def preview_query(query: str, limit: int = QUERY_LOG_PREVIEW) -> str:
    """Citizen messages are truncated before they reach a log line."""
    return query if len(query) <= limit else query[:limit] + "..."


class ServiceLogger:
    """
    Name-keyed singleton logger.

    The file handler is attached only when a log directory is given, either
    explicitly or through RAG_LOG_DIR.
    """

    _instances: dict[str, "ServiceLogger"] = {}

    def __new__(cls, name: str = "govconnect_rag", log_dir: str | None = None):
        if name not in cls._instances:
            instance = super().__new__(cls)
            cls._instances[name] = instance
        return cls._instances[name]

    def __init__(self, name: str = "govconnect_rag", log_dir: str | None = None):
        if hasattr(self, "_initialized"):
            return

        self.name = name
        log_dir = log_dir or os.environ.get("RAG_LOG_DIR")
        self.log_dir = Path(log_dir) if log_dir else None
        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)

        self._setup_logger()
        self._initialized = True

    def _setup_logger(self) -> None:
        self.logger = logging.getLogger(self.name)
        self.logger.setLevel(logging.DEBUG)
        self.logger.handlers = []

        sensitive_filter = SensitiveDataFilter()

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s", datefmt="%H:%M:%S"
            )
        )
        console_handler.addFilter(sensitive_filter)
        self.logger.addHandler(console_handler)

        if self.log_dir is not None:
            today = datetime.now().strftime("%Y-%m-%d")
            file_handler = logging.FileHandler(
                self.log_dir / f"{self.name}_{today}.log", encoding="utf-8"
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(
                logging.Formatter("%(asctime)s | %(levelname)-8s | %(name)s | %(message)s")
            )
            file_handler.addFilter(sensitive_filter)
            self.logger.addHandler(file_handler)

    def _format_extra(self, extra: dict | None) -> str:
        if not extra:
            return ""
        try:
            return f" | {json.dumps(extra, ensure_ascii=False, default=str)}"
        except (TypeError, ValueError):
            return f" | {str(extra)}"

    def debug(self, message: str, extra: dict | None = None) -> None:
        self.logger.debug(f"{message}{self._format_extra(extra)}")

    def info(self, message: str, extra: dict | None = None) -> None:
        self.logger.info(f"{message}{self._format_extra(extra)}")

    def warning(self, message: str, extra: dict | None = None) -> None:
        self.logger.warning(f"{message}{self._format_extra(extra)}")

    def error(self, message: str, extra: dict | None = None, exc_info: bool = False) -> None:
        self.logger.error(f"{message}{self._format_extra(extra)}", exc_info=exc_info)

    # Retrieval helpers
    def retrieval_start(self, query: str, options: dict | None = None) -> None:
        self.info(f"🔍 RAG retrieval: {preview_query(query)}", options)

    def retrieval_complete(
        self,
        total_results: int,
        confidence: str,
        search_time_ms: int,
        intent: str | None = None,
    ) -> None:
        self.info(
            f"✅ RAG retrieval complete: {total_results} results",
            {
                "confidence": confidence,
                "search_time_ms": search_time_ms,
                "intent": intent,
            },
        )

    def retrieval_failed(self, query: str, error: str, stage: str | None = None) -> None:
        self.error(
            f"❌ RAG retrieval failed: {preview_query(query)}",
            {"error": error, "stage": stage},
        )

    def llm_request(self, model: str, prompt_tokens: int | None = None) -> None:
        self.debug(f"🤖 LLM Request: {model}", {"prompt_tokens": prompt_tokens})

    def llm_response(
        self, model: str, completion_tokens: int | None = None, latency_ms: float | None = None
    ) -> None:
        self.debug(
            f"   LLM Response: {model}",
            {
                "completion_tokens": completion_tokens,
                "latency_ms": round(latency_ms, 1) if latency_ms else None,
            },
        )
