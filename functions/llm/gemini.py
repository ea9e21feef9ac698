# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

import json
import logging
import re
import time
from typing import Iterator, Sequence

from google import genai
from google.genai import errors, types

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"
QUERY_RESPONSE_MAX_OUTPUT_TOKENS = 4000
ANALYSIS_MAX_OUTPUT_TOKENS = 8000

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class GeminiInvalidResponseException(Exception):
    pass


class GeminiRateLimitException(Exception):
    pass


def _contents(history: Sequence[dict], query: str) -> list[types.Content]:
    """Chat history ({role, content}) followed by the new user turn."""
    contents = [
        types.Content(
            role="model" if message.get("role") == "assistant" else "user",
            parts=[types.Part.from_text(text=message.get("content", ""))],
        )
        for message in history
    ]
    contents.append(types.Content(role="user", parts=[types.Part.from_text(text=query)]))
    return contents


def _generate(client: genai.Client, **kwargs):
    try:
        return client.models.generate_content(**kwargs)
    except errors.APIError as e:
        if e.code == 429:
            raise GeminiRateLimitException(str(e)) from e
        raise


def call_predict(
    query: str,
    api_key: str,
    system_instruction: str | None = None,
    history: Sequence[dict] = (),
    model: str = DEFAULT_MODEL,
) -> str:
    client = genai.Client(api_key=api_key)
    start_time = time.time()
    response = _generate(
        client,
        model=model,
        contents=_contents(history, query),
        config=types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=0,
            max_output_tokens=QUERY_RESPONSE_MAX_OUTPUT_TOKENS,
        ),
    )
    logger.info("Gemini call took %.2fs", time.time() - start_time)
    if not response.text:
        raise GeminiInvalidResponseException()
    return response.text


def call_predict_with_documents(
    prompt: str,
    documents: Sequence[tuple[str, bytes, str]],
    api_key: str,
    system_instruction: str | None = None,
    model: str = DEFAULT_MODEL,
) -> str:
    """
    Calls Gemini with a prompt followed by documents.

    Args:
        prompt (str): Instructions sent before the documents.
        documents: (file_name, data, mime_type) triples. PDFs and images are
            sent inline; other formats are replaced by a short note.
        api_key (str): Gemini API key.
        system_instruction (str): Optional system prompt.
        model (str): The model to call with.

    Returns:
        str: The model's text answer.
    """
    client = genai.Client(api_key=api_key)
    contents: list = [prompt]
    for index, (file_name, data, mime_type) in enumerate(documents, start=1):
        contents.append(f"\n\n--- DOCUMENT {index}: {file_name} ---")
        if mime_type == "application/pdf" or mime_type.startswith("image/"):
            contents.append(types.Part.from_bytes(data=data, mime_type=mime_type))
        else:
            contents.append(
                f"[Document {file_name} - Format non supporté. Convertir en PDF ou image.]"
            )

    logger.info("Calling Gemini with %d documents", len(documents))
    start_time = time.time()
    response = _generate(
        client,
        model=model,
        contents=contents,
        config=types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=0,
            max_output_tokens=ANALYSIS_MAX_OUTPUT_TOKENS,
        ),
    )
    logger.info("Gemini documents call took %.2fs", time.time() - start_time)
    if not response.text:
        raise GeminiInvalidResponseException()
    return response.text


def stream_predict(
    query: str,
    api_key: str,
    system_instruction: str | None = None,
    history: Sequence[dict] = (),
    model: str = DEFAULT_MODEL,
) -> Iterator[str]:
    """Yields the answer's text chunks as Gemini produces them."""
    client = genai.Client(api_key=api_key)
    try:
        stream = client.models.generate_content_stream(
            model=model,
            contents=_contents(history, query),
            config=types.GenerateContentConfig(
                system_instruction=system_instruction,
                max_output_tokens=QUERY_RESPONSE_MAX_OUTPUT_TOKENS,
            ),
        )
        for chunk in stream:
            if chunk.text:
                yield chunk.text
    except errors.APIError as e:
        if e.code == 429:
            raise GeminiRateLimitException(str(e)) from e
        raise


def parse_json_response(text: str) -> dict | None:
    """Extract the first JSON object embedded in a model answer."""
    match = _JSON_OBJECT.search(text or "")
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        logger.warning("Model answer contained malformed JSON")
        return None
    return parsed if isinstance(parsed, dict) else None
