"""Upload dispatch: one archive -> one classified ``UploadOutcome``.

Every attempt ends in an outcome, never an exception: the batch keeps going
whatever happens to a single archive.
"""

from __future__ import annotations

import asyncio
import inspect
from pathlib import Path

from pilet.core.config import AuthScheme, ReleaseConfig
from pilet.core.result import Err, Ok, Result
from pilet.output.console import ConsoleProtocol
from pilet.services.release.context import CredentialPrompt
from pilet.services.release.errors import MissingApiKey
from pilet.services.release.model import Artifact, UploadOutcome, UploadStatus, classify_status
from pilet.tools.http import FilePart, HttpClient, HttpResponse
from pilet.tools.tls import TrustMaterial

__all__ = [
    "UPLOAD_FIELD",
    "UPLOAD_FILENAME",
    "UploadDispatcher",
    "ask_credential",
    "auth_headers",
    "resolve_credential",
]

UPLOAD_FIELD = "file"
UPLOAD_FILENAME = "pilet.tgz"


def auth_headers(scheme: AuthScheme, key: str | None) -> dict[str, str]:
    if not key:
        return {}
    return {"Authorization": scheme.header_value(key)}


async def ask_credential(prompt: CredentialPrompt, text: str) -> str:
    """Ask ``prompt`` for a credential. Blocking prompts run in a worker thread."""
    answer = await asyncio.to_thread(prompt, text)
    if inspect.isawaitable(answer):
        answer = await answer
    return answer.strip()


async def resolve_credential(
    config: ReleaseConfig,
    prompt: CredentialPrompt | None,
) -> Result[str | None, MissingApiKey]:
    """Credential for the run: the configured key, or one asked for once.

    Without a key, only the ``none`` scheme, or an interactive run with a
    prompt that yields a non-empty answer, may proceed.
    """
    if config.api_key:
        return Ok(config.api_key)
    if not config.auth_scheme.requires_key:
        return Ok(None)
    if config.interactive and prompt is not None:
        key = await ask_credential(prompt, f"API key for {config.feed_url}")
        if key:
            return Ok(key)
    return Err(MissingApiKey())


def _challenge_scheme(header: str, fallback: AuthScheme) -> AuthScheme:
    scheme, _, _ = header.strip().partition(" ")
    return AuthScheme.parse(scheme) or fallback


async def _read_artifact(path: Path) -> bytes | None:
    try:
        return await asyncio.to_thread(path.read_bytes)
    except OSError:
        return None


class UploadDispatcher:
    """Posts archives to the feed service for one run.

    The credential lives on the dispatcher: a token obtained after an
    authentication challenge is reused for the remaining archives.
    """

    def __init__(
        self,
        http: HttpClient,
        console: ConsoleProtocol,
        *,
        credential: str | None,
        scheme: AuthScheme,
        prompt: CredentialPrompt | None = None,
    ) -> None:
        self._http = http
        self._console = console
        self._credential = credential
        self._scheme = scheme
        self._prompt = prompt

    @property
    def credential(self) -> str | None:
        return self._credential

    @property
    def scheme(self) -> AuthScheme:
        return self._scheme

    async def _post(
        self, content: bytes, config: ReleaseConfig, trust: TrustMaterial | None
    ) -> Result[HttpResponse, str]:
        headers = {**config.extra_headers, **auth_headers(self._scheme, self._credential)}
        result = await self._http.post_form(
            config.feed_url,
            fields=config.extra_fields,
            files={UPLOAD_FIELD: FilePart(UPLOAD_FILENAME, content)},
            headers=headers,
            trust=trust,
        )
        if isinstance(result, Err):
            return Err(str(result.error))
        return Ok(result.value)

    async def _answer_challenge(self, response: HttpResponse, config: ReleaseConfig) -> bool:
        challenge = response.header("WWW-Authenticate")
        if response.status != 401 or not challenge:
            return False
        if not config.interactive or self._prompt is None:
            return False

        self._console.warning(f"The feed service asks for authentication ({challenge}).")
        token = await ask_credential(self._prompt, f"Token for {config.feed_url}")
        if not token:
            return False
        self._scheme = _challenge_scheme(challenge, self._scheme)
        self._credential = token
        return True

    async def upload(
        self,
        artifact: Artifact,
        config: ReleaseConfig,
        trust: TrustMaterial | None,
    ) -> UploadOutcome:
        """Upload one archive and classify the feed service's answer."""
        content = await _read_artifact(artifact)
        if content is None:
            self._console.error(f"Failed to read {artifact}; not uploaded.")
            return UploadOutcome(artifact=artifact, status=UploadStatus.UNREADABLE)

        self._console.info(f'Publishing "{artifact}" to "{config.feed_url}" ...')
        posted = await self._post(content, config, trust)
        if isinstance(posted, Ok) and await self._answer_challenge(posted.value, config):
            posted = await self._post(content, config, trust)

        if isinstance(posted, Err):
            self._console.error(f"Failed to upload {artifact}: {posted.error}")
            return UploadOutcome(
                artifact=artifact,
                status=UploadStatus.UPLOAD_FAILED,
                response_body=posted.error,
            )

        response = posted.value
        status = classify_status(response.status)
        body = response.text or None
        self._report(artifact, status, response)
        return UploadOutcome(
            artifact=artifact,
            status=status,
            http_status=response.status,
            response_body=body,
        )

    def _report(self, artifact: Artifact, status: UploadStatus, response: HttpResponse) -> None:
        detail = f" {response.text.strip()}" if response.text.strip() else ""
        match status:
            case UploadStatus.SUCCESS:
                self._console.success(f"Published {artifact.name}")
                if detail:
                    self._console.debug(f"Feed response:{detail}")
            case UploadStatus.PAYMENT_REQUIRED:
                self._console.error(
                    f"{artifact.name}: the feed service requires payment (HTTP 402).{detail}"
                )
            case UploadStatus.VERSION_CONFLICT:
                self._console.error(
                    f"{artifact.name}: this version is already published (HTTP 409).{detail}"
                )
            case UploadStatus.PAYLOAD_TOO_LARGE:
                self._console.error(
                    f"{artifact.name}: the archive is too large for the feed service (HTTP 413).{detail}"
                )
            case UploadStatus.UPLOAD_FAILED | UploadStatus.UNREADABLE:
                self._console.error(
                    f"{artifact.name}: upload failed (HTTP {response.status}).{detail}"
                )
