"""Speechmatics ASR client implementation.

Implements SpeechmaticsEngine on the Speechmatics Batch API v2. Each
chunk WAV is submitted as its own job; the json-v2 result is converted
into a Unit whose timestamps are offset into the source recording.
"""

import asyncio
import json
import logging
import time

import httpx

from speech_pipeline.asr.interface import ASREngine, Unit, Word
from speech_pipeline.asr.merge import collapse_spaces
from speech_pipeline.utils.errors import ASRError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://asr.api.speechmatics.com/v2"
POLL_INTERVAL_SECONDS = 5.0
TRANSIENT_STATUS_CODES = {429, 503}
TIME_DECIMALS = 3


class SpeechmaticsEngine(ASREngine):
    """Speechmatics Batch API engine.

    Args:
        api_key: Speechmatics API key for authentication.
        language: Transcription language code (default "en").
        timeout: Maximum seconds to wait for job completion (default 600).
        base_url: Speechmatics API base URL (default production endpoint).
        poll_interval: Seconds between job status polls.
    """

    name = "speechmatics"

    def __init__(
        self,
        api_key: str,
        language: str = "en",
        timeout: int = 600,
        base_url: str = DEFAULT_BASE_URL,
        poll_interval: float = POLL_INTERVAL_SECONDS,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")
        self._api_key = api_key
        self._language = language
        self._timeout = timeout
        self._base_url = base_url.rstrip("/")
        self._poll_interval = poll_interval

    @property
    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    async def transcribe(self, audio_path: str, base_start: float = 0.0) -> Unit | None:
        """Transcribe one chunk via the Batch API.

        Raises:
            ASRError: On submission failure, job rejection, or timeout.
        """
        async with httpx.AsyncClient() as client:
            job_id = await self._submit_job(client, audio_path)
            await self._poll_until_complete(client, job_id)
            raw_response = await self._fetch_transcript(client, job_id)
        try:
            return self._convert_response(raw_response, base_start)
        except (ValueError, TypeError, AttributeError) as exc:
            raise ASRError(
                f"Malformed transcript for job {job_id}: {exc}", provider=self.name
            ) from exc

    def _json_body(self, response: httpx.Response, what: str) -> dict:
        """Decode a JSON object body, raising ASRError on anything else."""
        try:
            body = response.json()
        except ValueError as exc:
            raise ASRError(
                f"Invalid JSON in {what} response: {exc}", provider=self.name
            ) from exc
        if not isinstance(body, dict):
            raise ASRError(
                f"Expected a JSON object in {what} response", provider=self.name
            )
        return body

    async def _submit_job(self, client: httpx.AsyncClient, audio_path: str) -> str:
        """Submit an audio file for transcription and return the job ID."""
        config = {
            "type": "transcription",
            "transcription_config": {"language": self._language},
        }

        try:
            with open(audio_path, "rb") as audio_file:
                files = {"data_file": ("audio.wav", audio_file, "audio/wav")}
                data = {"config": json.dumps(config)}
                response = await client.post(
                    f"{self._base_url}/jobs/",
                    headers=self._headers,
                    files=files,
                    data=data,
                )
        except (OSError, httpx.HTTPError) as exc:
            raise ASRError(
                f"Failed to submit job: {exc}", provider=self.name
            ) from exc

        if response.status_code == 429:
            raise ASRError("Rate limited during job submission", provider=self.name)
        if response.status_code == 503:
            raise ASRError(
                "Service unavailable during job submission", provider=self.name
            )
        if response.status_code != 201:
            raise ASRError(
                f"Job submission failed with status {response.status_code}: "
                f"{response.text}",
                provider=self.name,
            )

        job_id = self._json_body(response, "submission").get("id")
        if not job_id:
            raise ASRError("No job ID in submission response", provider=self.name)

        logger.debug("Submitted Speechmatics job %s for %s", job_id, audio_path)
        return job_id

    async def _poll_until_complete(
        self, client: httpx.AsyncClient, job_id: str
    ) -> None:
        """Poll job status until done, rejected, or timeout."""
        url = f"{self._base_url}/jobs/{job_id}"
        deadline = time.monotonic() + self._timeout

        while time.monotonic() < deadline:
            try:
                response = await client.get(url, headers=self._headers)
            except httpx.HTTPError as exc:
                raise ASRError(
                    f"Failed to poll job status: {exc}", provider=self.name
                ) from exc

            if response.status_code in TRANSIENT_STATUS_CODES:
                await asyncio.sleep(self._poll_interval)
                continue

            if response.status_code != 200:
                raise ASRError(
                    f"Poll failed with status {response.status_code}: "
                    f"{response.text}",
                    provider=self.name,
                )

            job = self._json_body(response, "status").get("job") or {}
            status = job.get("status", "") if isinstance(job, dict) else ""
            if status == "done":
                return
            if status in ("rejected", "deleted"):
                raise ASRError(f"Job {job_id} was {status}", provider=self.name)

            await asyncio.sleep(self._poll_interval)

        raise ASRError(
            f"Job {job_id} timed out after {self._timeout}s", provider=self.name
        )

    async def _fetch_transcript(self, client: httpx.AsyncClient, job_id: str) -> dict:
        """Fetch the completed json-v2 transcript."""
        try:
            response = await client.get(
                f"{self._base_url}/jobs/{job_id}/transcript",
                headers=self._headers,
                params={"format": "json-v2"},
            )
        except httpx.HTTPError as exc:
            raise ASRError(
                f"Failed to fetch transcript: {exc}", provider=self.name
            ) from exc

        if response.status_code != 200:
            raise ASRError(
                f"Transcript fetch failed with status "
                f"{response.status_code}: {response.text}",
                provider=self.name,
            )
        return self._json_body(response, "transcript")

    def _convert_response(self, raw_response: dict, base_start: float) -> Unit | None:
        """Convert a json-v2 response into a Unit offset by base_start.

        Word results become Words; punctuation results only contribute to
        the text. Returns None when the response holds no words.
        """
        words: list[Word] = []
        pieces: list[str] = []

        for result in raw_response.get("results", []):
            alternatives = result.get("alternatives", [])
            if not alternatives:
                continue
            content = alternatives[0].get("content", "")
            kind = result.get("type")

            if kind == "punctuation":
                pieces.append(content)
            elif kind == "word":
                pieces.append(content)
                words.append(
                    Word(
                        text=content,
                        start=round(
                            base_start + float(result.get("start_time", 0.0)),
                            TIME_DECIMALS,
                        ),
                        end=round(
                            base_start + float(result.get("end_time", 0.0)),
                            TIME_DECIMALS,
                        ),
                    )
                )

        if not words:
            return None

        return Unit(
            start=words[0].start,
            end=words[-1].end,
            text=collapse_spaces(" ".join(pieces)),
            words=words,
        )
