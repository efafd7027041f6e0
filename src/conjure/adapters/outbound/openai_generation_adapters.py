"""OpenAI Responses API を使う正規化・コード生成アダプタ。"""

from __future__ import annotations

import json
import os

from openai import (
    APIConnectionError,
    APIError,
    APITimeoutError,
    AsyncOpenAI,
    AuthenticationError,
    OpenAIError,
)

from conjure.adapters.outbound.generation_prompts import (
    GENERATOR_INSTRUCTIONS,
    NORMALIZER_INSTRUCTIONS,
)
from conjure.ports.outbound.code_generator_port import CodeGeneratorPort
from conjure.ports.outbound.external_service_errors import ExternalServiceError
from conjure.ports.outbound.prompt_normalizer_port import PromptNormalizerPort

_DEFAULT_MODEL = "gpt-4.1-mini"


class OpenAIConfigurationError(ExternalServiceError):
    """OpenAI 設定不備を表す例外。"""


class OpenAIResponseFormatError(ExternalServiceError):
    """OpenAI 応答フォーマット不正を表す例外。"""


class OpenAIRequestError(ExternalServiceError):
    """OpenAI API 呼び出し失敗を表す例外。"""


class _OpenAIResponsesBase:
    """正規化とコード生成で共有する Responses API 呼び出し。"""

    def __init__(
        self,
        *,
        model: str | None = None,
        api_key: str | None = None,
        temperature: float = 0.2,
        max_output_tokens: int = 1000,
        client: AsyncOpenAI | None = None,
    ) -> None:
        """モデル名・API キー・生成パラメータを保持する。クライアントは遅延生成する。"""
        self._model: str = model if model is not None else os.getenv("OPENAI_MODEL", _DEFAULT_MODEL)
        self._api_key = api_key or os.getenv("OPENAI_API_KEY", "")
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self._api_key:
                raise OpenAIConfigurationError("OPENAI_API_KEY が設定されていません。")
            self._client = AsyncOpenAI(api_key=self._api_key)
        return self._client

    async def _request_text(self, *, instructions: str, prompt: str) -> str:
        try:
            response = await self._get_client().responses.create(
                model=self._model,
                instructions=instructions,
                input=prompt,
                temperature=self._temperature,
                max_output_tokens=self._max_output_tokens,
            )
        except AuthenticationError as exc:
            raise OpenAIConfigurationError(
                "OpenAI 認証に失敗しました。OPENAI_API_KEY を確認してください。"
            ) from exc
        except (APITimeoutError, APIConnectionError, APIError, OpenAIError) as exc:
            raise OpenAIRequestError(
                f"OpenAI API 呼び出しに失敗しました: {exc.__class__.__name__}"
            ) from exc
        output_text = getattr(response, "output_text", None)
        if not isinstance(output_text, str):
            raise OpenAIResponseFormatError("OpenAI 応答に output_text が含まれていません。")
        normalized_text = output_text.strip()
        if not normalized_text:
            raise OpenAIResponseFormatError("OpenAI 応答テキストが空です。")
        return normalized_text


class OpenAIPromptNormalizerAdapter(_OpenAIResponsesBase, PromptNormalizerPort):
    """自由入力を 1〜2 語の意図キーに圧縮する。"""

    def __init__(
        self,
        *,
        model: str | None = None,
        api_key: str | None = None,
        temperature: float = 0.0,
        max_output_tokens: int = 16,
        client: AsyncOpenAI | None = None,
    ) -> None:
        """軽量モデル向けの既定値で初期化する。"""
        super().__init__(
            model=model,
            api_key=api_key,
            temperature=temperature,
            max_output_tokens=max_output_tokens,
            client=client,
        )

    async def normalize(self, text: str) -> str:
        """モデル応答の 1 行目をそのまま返す。"""
        response_text = await self._request_text(instructions=NORMALIZER_INSTRUCTIONS, prompt=text)
        return response_text.splitlines()[0]


class OpenAICodeGeneratorAdapter(_OpenAIResponsesBase, CodeGeneratorPort):
    """ユーザー入力からオブジェクト生成コードを得る。"""

    def __init__(
        self,
        *,
        model: str | None = None,
        api_key: str | None = None,
        temperature: float = 0.4,
        max_output_tokens: int = 4000,
        client: AsyncOpenAI | None = None,
    ) -> None:
        """コード生成向けの既定値で初期化する。"""
        super().__init__(
            model=model,
            api_key=api_key,
            temperature=temperature,
            max_output_tokens=max_output_tokens,
            client=client,
        )

    async def generate(self, text: str) -> str:
        """応答 JSON の code フィールドを無加工で返す。"""
        response_text = await self._request_text(instructions=GENERATOR_INSTRUCTIONS, prompt=text)
        payload = _parse_json_object(response_text)
        code = payload.get("code")
        if not isinstance(code, str) or not code.strip():
            raise OpenAIResponseFormatError("生成応答に code 文字列が含まれていません。")
        return code


def _parse_json_object(response_text: str) -> dict[str, object]:
    """Markdown フェンスを剥がして JSON object として読む。"""
    text = response_text.strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:].strip()

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise OpenAIResponseFormatError("生成応答 JSON のパースに失敗しました。") from exc

    if not isinstance(parsed, dict):
        raise OpenAIResponseFormatError("生成応答が JSON object ではありません。")
    return parsed
