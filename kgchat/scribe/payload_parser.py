"""
Response Payload Parser

Pulls structured blocks out of a model reply:

    <events>[{...}, {...}]</events>   a JSON array of event objects
    <view>{...}</view>                one UI view descriptor

Blocks are matched non-greedily in document order and decoded one by one.
A block that fails to decode or validate is dropped with a warning; it is
still removed from the prose since it matched the tag grammar.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..common.llm_utils import load_json_block
from ..common.schemas import ViewDescriptor, parse_view

logger = logging.getLogger("kgchat.scribe.payload_parser")

EVENTS_BLOCK = re.compile(r"<events>(.*?)</events>", re.DOTALL)
VIEW_BLOCK = re.compile(r"<view>(.*?)</view>", re.DOTALL)


@dataclass
class ParsedResponse:
    """Prose plus the raw events and validated views found in a reply"""
    text: str
    events: List[Dict[str, Any]] = field(default_factory=list)
    views: List[ViewDescriptor] = field(default_factory=list)

    @property
    def view(self) -> Optional[ViewDescriptor]:
        """First view, for callers that only render one"""
        return self.views[0] if self.views else None


def _extract_events(content: str) -> List[Dict[str, Any]]:
    events: List[Dict[str, Any]] = []
    for match in EVENTS_BLOCK.finditer(content):
        try:
            parsed = load_json_block(match.group(1))
        except json.JSONDecodeError as e:
            logger.warning("Failed to parse events block: %s", e)
            continue
        if not isinstance(parsed, list):
            logger.warning("Events block is not an array, skipping")
            continue
        for item in parsed:
            if isinstance(item, dict):
                events.append(item)
            else:
                logger.warning("Skipping non-object event entry: %r", item)
    return events


def _extract_views(content: str) -> List[ViewDescriptor]:
    views: List[ViewDescriptor] = []
    for match in VIEW_BLOCK.finditer(content):
        try:
            views.append(parse_view(load_json_block(match.group(1))))
        except json.JSONDecodeError as e:
            logger.warning("Failed to parse view block: %s", e)
        except ValidationError as e:
            logger.warning("Invalid view descriptor: %s", e.errors()[0].get("msg", e))
    return views


def parse_response(content: str) -> ParsedResponse:
    """Split a reply into prose, events and views."""
    events = _extract_events(content)
    views = _extract_views(content)

    text = EVENTS_BLOCK.sub("", content).strip()
    text = VIEW_BLOCK.sub("", text).strip()

    return ParsedResponse(text=text, events=events, views=views)
