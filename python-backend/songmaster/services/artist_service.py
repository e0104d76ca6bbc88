from __future__ import annotations

import logging

from pydantic import ValidationError

from songmaster.agent.errors import ParseError
from songmaster.agent.llm_client import CompletionClient
from songmaster.agent.prompts import ARTIST_CREATOR_KEY
from songmaster.agent.response_parser import RAW_PREVIEW_CHARS, parse_json_object
from songmaster.models.artist import Artist, ArtistOption
from songmaster.services.prompt_store import PromptStore
from songmaster.services.record_store import ARTISTS_TABLE, RecordStore

log = logging.getLogger(__name__)

ARTIST_MAX_TOKENS = 2000
ARTIST_TEMPERATURE = 0.9


async def generate_artist_options(
    client: CompletionClient,
    prompts: PromptStore,
    description: str,
    model_name: str,
) -> list[ArtistOption]:
    """Ask one model for three fictional artist profiles matching ``description``.

    Raises:
        TransportError: The completion call failed.
        ParseError: The reply had no usable ``artists`` list.
    """
    system_prompt = await prompts.get_prompt(ARTIST_CREATOR_KEY)
    raw = await client.complete(
        model_name,
        [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": description},
        ],
        max_tokens=ARTIST_MAX_TOKENS,
        temperature=ARTIST_TEMPERATURE,
    )
    data = parse_json_object(raw)
    options = data.get("artists")
    if not isinstance(options, list) or not options:
        raise ParseError("Reply has no 'artists' list", raw[:RAW_PREVIEW_CHARS])
    try:
        parsed = [ArtistOption.model_validate(option) for option in options]
    except ValidationError as e:
        raise ParseError(f"Malformed artist option: {e.error_count()} error(s)") from e
    log.info("Generated %d artist option(s) with %s", len(parsed), model_name)
    return parsed


async def load_artist(records: RecordStore, artist_id: str) -> Artist | None:
    row = await records.get(ARTISTS_TABLE, artist_id)
    return Artist.model_validate(row) if row else None
