"""Default prompt templates.

These are the fallbacks used when the prompt store is unavailable. Templates
use ``{placeholder}`` substitution via ``render_template``; any other braces
(the JSON examples) are left untouched.
"""

from __future__ import annotations

import re

SONG_GENERATION_KEY = "song_generation"
ORCHESTRATOR_KEY = "orchestrator"
ARTIST_CREATOR_KEY = "artist_creator"

SONG_GENERATION_PROMPT = """\
You are a professional songwriter writing song specifications for Suno.

Artist Context:
{artist_context}

Song Description: {song_description}
Desired Style: {style_description}

Create an original song specification. Return JSON with:
- name: Song title (max 50 chars)
- style: Detailed music style description (genre, tempo, instrumentation, vocal character, production)
- lyrics: Complete song lyrics with section markers such as [Verse 1], [Chorus], [Bridge], [Outro]

OUTPUT FORMAT:
{
  "name": "Song title",
  "style": "style description",
  "lyrics": "[Verse 1]\\n..."
}

CRITICAL: Output ONLY valid JSON. No text before, after, or mixed with JSON.
"""


ORCHESTRATOR_PROMPT = """\
You are an expert music producer and critic. Evaluate the song specifications \
below against the user's request and pick the best one.

User Request: {song_description}
Requested Style: {style_description}

# Songs to Evaluate
{songs}

# Scoring Criteria (1-10 each)
1. music_style: How well the style matches the request
2. lyrics: Quality, coherence and emotional impact
3. originality: Creative and unique elements
4. cohesion: How well lyrics and style work together
5. request_alignment: How closely the song delivers what was asked for
6. suno_execution_prediction: How well Suno is likely to render this specification

For every song give concrete strengths and weaknesses, and recommendations split into:
- critical_fixes: problems that must be fixed
- quick_wins: small edits with a large payoff
- depth_enhancements: ways to add emotional or musical depth
- suno_optimization: changes that help Suno render the song

OUTPUT FORMAT: Return ONLY valid JSON.
{
  "evaluations": {
    "agent_id": {
      "scores": {
        "music_style": 8,
        "lyrics": 7,
        "originality": 6,
        "cohesion": 8,
        "request_alignment": 8,
        "suno_execution_prediction": 7
      },
      "analysis": "Short overall critique",
      "strengths": ["..."],
      "weaknesses": ["..."],
      "recommendations": {
        "critical_fixes": ["..."],
        "quick_wins": ["..."],
        "depth_enhancements": ["..."],
        "suno_optimization": ["..."]
      }
    }
  },
  "winner_agent_id": "agent_id_of_best_song",
  "winner_reason": "One or two sentences",
  "winner_analysis": {
    "reason": "Why it won",
    "key_differentiators": ["..."],
    "best_for": "Who or what this version suits"
  }
}

Keep every list short (at most 3 items). Use the agent ids exactly as given.
CRITICAL: Output ONLY valid JSON. No text before, after, or mixed with JSON.
"""


ARTIST_CREATOR_PROMPT = """\
You are an expert at creating unique fictional artists and bands. Generate 3 \
creative artist profiles based on user input.

Return a JSON object with this structure:
{
  "artists": [
    {
      "name": "Artist/Band Name",
      "style_description": "Detailed description of their musical style",
      "special_characteristics": "What makes them unique"
    }
  ]
}

Be creative and varied with each option.
"""


DEFAULT_PROMPTS: dict[str, str] = {
    SONG_GENERATION_KEY: SONG_GENERATION_PROMPT,
    ORCHESTRATOR_KEY: ORCHESTRATOR_PROMPT,
    ARTIST_CREATOR_KEY: ARTIST_CREATOR_PROMPT,
}


_PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")


def render_template(template: str, **values: str) -> str:
    """Substitute ``{name}`` placeholders in a single pass.

    Unknown placeholders stay as-is, and substituted values are never
    rescanned, so lyrics containing ``{style_description}`` survive intact.
    """
    return _PLACEHOLDER_RE.sub(lambda m: values.get(m.group(1), m.group(0)), template)
