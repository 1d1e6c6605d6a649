"""Dictionary — ``fun.dict`` answers with definitions of "fun".

Definitions come from a local WordNet(R) database directory, the one
shipped as ``dict/`` in the WordNet 3.x distribution.  Only the four
data files are read::

    data.noun  data.verb  data.adj  data.adv

Each non-header line of a data file describes one synset::

    00001740 03 n 01 entity 0 003 ~ 00001930 n 0000 | that which is perceived

    offset lex_filenum ss_type w_cnt (word lex_id){w_cnt} ... | gloss

``w_cnt`` is two hexadecimal digits; multi-word lemmas use ``_`` for
spaces; adjective lemmas may carry a syntactic marker such as ``(a)``.
Header lines (the licence text) start with two spaces.

The whole index is built in memory at startup and never changes, so the
service is stateless as far as snapshots are concerned.
"""

from __future__ import annotations

import re
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from dnsabuse.config import ConfigError
from dnsabuse.help import HelpEntry
from dnsabuse.records import txt
from dnsabuse.services.base import QueryError, StatelessService

if TYPE_CHECKING:
    from dnslib import RR

    from dnsabuse.config import ServiceConfig
    from dnsabuse.services.base import Question

DEFAULT_MAX_RESULTS = 5
DICT_TTL = 86400

DATA_FILES: dict[str, str] = {
    "data.noun": "noun",
    "data.verb": "verb",
    "data.adj": "adjective",
    "data.adv": "adverb",
}

_ADJ_MARKER = re.compile(r"\((?:a|p|ip)\)$")
_WORD = re.compile(r"^[a-z0-9][a-z0-9_'-]*$")


@dataclass(frozen=True)
class Definition:
    """One sense of a word."""

    word: str
    pos: str
    gloss: str

    def __str__(self) -> str:
        """Format as ``word (pos): gloss``."""
        return f"{self.word} ({self.pos}): {self.gloss}"


def parse_data_line(line: str, pos: str) -> list[Definition]:
    """Parse one WordNet data line into a definition per lemma.

    Returns an empty list for header lines.

    Raises:
        ValueError: If the line is malformed.

    """
    if line.startswith("  ") or not line.strip():
        return []
    head, _, gloss = line.partition(" | ")
    fields = head.split()
    word_count = int(fields[3], 16)
    lemmas = fields[4 : 4 + 2 * word_count : 2]
    if len(lemmas) != word_count:
        msg = f"truncated synset line: {line[:40]!r}"
        raise ValueError(msg)
    gloss = gloss.strip()
    return [
        Definition(word=_ADJ_MARKER.sub("", lemma).lower(), pos=pos, gloss=gloss)
        for lemma in lemmas
    ]


def load_wordnet(path: Path) -> dict[str, list[Definition]]:
    """Index every lemma in the WordNet data files under *path*.

    Raises:
        ConfigError: If no data file can be found or parsed.

    """
    index: dict[str, list[Definition]] = defaultdict(list)
    found = False
    for filename, pos in DATA_FILES.items():
        data_file = path / filename
        if not data_file.is_file():
            continue
        found = True
        with data_file.open(encoding="utf-8", errors="replace") as f:
            for number, line in enumerate(f, start=1):
                try:
                    definitions = parse_data_line(line, pos)
                except (ValueError, IndexError) as e:
                    msg = f"{data_file}:{number}: {e}"
                    raise ConfigError(msg) from e
                for definition in definitions:
                    index[definition.word].append(definition)
    if not found:
        msg = f"No WordNet data files in {path}"
        raise ConfigError(msg)
    return dict(index)


class DictionaryService(StatelessService):
    """Look up English words in WordNet."""

    help = HelpEntry(
        "get the definition of an English word, powered by WordNet(R).",
        "dig @{domain} -p {port} fun.dict",
    )

    def __init__(
        self,
        index: dict[str, list[Definition]],
        *,
        max_results: int = DEFAULT_MAX_RESULTS,
    ) -> None:
        """Create the service over a prebuilt index.

        Args:
            index: Lemma → definitions, as built by ``load_wordnet``.
            max_results: Maximum number of senses per answer.

        """
        self._index = index
        self._max_results = max_results

    @classmethod
    def from_config(cls, cfg: ServiceConfig) -> DictionaryService:
        """Build the service from its ``[dict]`` settings.

        Raises:
            ConfigError: If ``wordnet_path`` is missing or unusable.

        """
        path = Path(cfg.require("wordnet_path"))
        max_results = int(cfg.options.get("max_results", DEFAULT_MAX_RESULTS))
        return cls(load_wordnet(path), max_results=max_results)

    def __len__(self) -> int:
        """Return the number of indexed lemmas."""
        return len(self._index)

    def define(self, word: str) -> list[Definition]:
        """Return up to ``max_results`` definitions of *word*."""
        key = word.lower().replace(" ", "_")
        return self._index.get(key, [])[: self._max_results]

    def query(self, question: Question) -> list[RR]:
        """Answer a word with one TXT record per sense.

        Raises:
            QueryError: If the word is malformed or unknown.

        """
        word = question.name
        if not _WORD.match(word):
            msg = f"invalid word '{word}'"
            raise QueryError(msg)
        definitions = self.define(word)
        if not definitions:
            msg = f"no definition for '{word}'"
            raise QueryError(msg)
        return [txt(question.qname, str(d), ttl=DICT_TTL) for d in definitions]
