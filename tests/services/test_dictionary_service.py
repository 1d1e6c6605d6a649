"""Tests for the WordNet dictionary service.

A tiny WordNet database is written to ``tmp_path`` for each test, in
the real data file format.
"""

from pathlib import Path

import pytest

from dnsabuse.config import ConfigError, ServiceConfig
from dnsabuse.services.base import QueryError, Question
from dnsabuse.services.dictionary import (
    Definition,
    DictionaryService,
    load_wordnet,
    parse_data_line,
)

HEADER = "  1 This software and database is being provided to you, the LICENSEE, by\n"

DATA_NOUN = (
    HEADER
    + "00001740 03 n 01 entity 0 003 ~ 00001930 n 0000 | that which is perceived\n"
    + "05420000 04 n 02 fun 0 merriment 0 000 | activities that are enjoyable\n"
    + "05421000 04 n 01 fun 0 000 | verbal wit or mockery\n"
    + "07000000 04 n 01 ice_cream 0 000 | frozen dessert\n"
)
DATA_ADJ = HEADER + "01000000 00 s 01 fun(a) 0 000 | providing enjoyment\n"
DATA_VERB = HEADER + "02000000 29 v 01 run 0 000 | move fast by using one's feet\n"

FUN_SENSES = 3


@pytest.fixture
def wordnet(tmp_path: Path) -> Path:
    """Write a miniature WordNet dict/ directory."""
    (tmp_path / "data.noun").write_text(DATA_NOUN, encoding="utf-8")
    (tmp_path / "data.adj").write_text(DATA_ADJ, encoding="utf-8")
    (tmp_path / "data.verb").write_text(DATA_VERB, encoding="utf-8")
    return tmp_path


def _define(service: DictionaryService, word: str) -> list[str]:
    records = service.query(Question(name=word, qname=f"{word}.dict."))
    return [b"".join(rr.rdata.data).decode() for rr in records]


class TestParseDataLine:
    """Verify the data file line format."""

    def test_single_lemma(self) -> None:
        """A one-word synset yields one definition."""
        (definition,) = parse_data_line(
            "00001740 03 n 01 entity 0 003 ~ 00001930 n 0000 | that which is perceived\n", "noun"
        )
        assert definition == Definition("entity", "noun", "that which is perceived")

    def test_several_lemmas(self) -> None:
        """Every lemma in the synset shares the gloss."""
        definitions = parse_data_line(
            "05420000 04 n 02 fun 0 merriment 0 000 | activities\n", "noun"
        )
        assert [d.word for d in definitions] == ["fun", "merriment"]

    def test_hex_word_count(self) -> None:
        """w_cnt is hexadecimal."""
        lemmas = " ".join(f"w{i} 0" for i in range(16))
        definitions = parse_data_line(f"00000001 00 n 10 {lemmas} 000 | many\n", "noun")
        assert len(definitions) == 16

    def test_adjective_marker_removed(self) -> None:
        """Syntactic markers like (a) are not part of the word."""
        (definition,) = parse_data_line("01000000 00 s 01 Fun(a) 0 000 | enjoyable\n", "adj")
        assert definition.word == "fun"

    def test_header_line(self) -> None:
        """Licence header lines are skipped."""
        assert parse_data_line(HEADER, "noun") == []

    def test_truncated_line(self) -> None:
        """A line with fewer lemmas than announced is rejected."""
        with pytest.raises(ValueError, match="truncated"):
            parse_data_line("00000001 00 n 03 only 0 | gloss\n", "noun")

    def test_str(self) -> None:
        """Definitions render as word (pos): gloss."""
        assert str(Definition("fun", "noun", "play")) == "fun (noun): play"


class TestLoadWordnet:
    """Verify building the index."""

    def test_index(self, wordnet: Path) -> None:
        """Lemmas from every data file are indexed."""
        index = load_wordnet(wordnet)
        assert {"entity", "fun", "merriment", "ice_cream", "run"} <= set(index)
        assert [d.pos for d in index["fun"]] == ["noun", "noun", "adjective"]

    def test_missing_directory(self, tmp_path: Path) -> None:
        """A directory without data files is a configuration error."""
        with pytest.raises(ConfigError, match="No WordNet data"):
            load_wordnet(tmp_path / "absent")

    def test_corrupt_file(self, tmp_path: Path) -> None:
        """A malformed data file is a configuration error naming the line."""
        (tmp_path / "data.noun").write_text(HEADER + "garbage\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="data.noun:2"):
            load_wordnet(tmp_path)


class TestDictionaryService:
    """Verify word queries."""

    def test_definitions(self, wordnet: Path) -> None:
        """Each sense becomes one TXT record."""
        service = DictionaryService(load_wordnet(wordnet))
        answers = _define(service, "fun")
        assert len(answers) == FUN_SENSES
        assert answers[0] == "fun (noun): activities that are enjoyable"
        assert answers[2] == "fun (adjective): providing enjoyment"

    def test_max_results(self, wordnet: Path) -> None:
        """At most max_results senses are returned."""
        service = DictionaryService(load_wordnet(wordnet), max_results=1)
        assert len(_define(service, "fun")) == 1

    def test_multi_word_lemma(self, wordnet: Path) -> None:
        """Underscored lemmas are found by their underscored name."""
        service = DictionaryService(load_wordnet(wordnet))
        assert _define(service, "ice_cream") == ["ice_cream (noun): frozen dessert"]
        assert service.define("ice cream")

    def test_unknown_word(self, wordnet: Path) -> None:
        """Unknown words are query errors."""
        service = DictionaryService(load_wordnet(wordnet))
        with pytest.raises(QueryError, match="no definition"):
            service.query(Question(name="zzyzx", qname="zzyzx.dict."))

    @pytest.mark.parametrize("word", ["", "a.b", "_x"])
    def test_invalid_word(self, wordnet: Path, word: str) -> None:
        """Names that cannot be words are query errors."""
        service = DictionaryService(load_wordnet(wordnet))
        with pytest.raises(QueryError):
            service.query(Question(name=word, qname="x.dict."))

    def test_from_config(self, wordnet: Path) -> None:
        """The service is built from wordnet_path and max_results."""
        cfg = ServiceConfig(
            enabled=True, options={"wordnet_path": str(wordnet), "max_results": 2}
        )
        service = DictionaryService.from_config(cfg)
        assert len(service) > 0
        assert len(_define(service, "fun")) == 2

    def test_from_config_requires_path(self) -> None:
        """wordnet_path is mandatory."""
        with pytest.raises(ConfigError, match="wordnet_path"):
            DictionaryService.from_config(ServiceConfig(enabled=True))

    def test_stateless(self, wordnet: Path) -> None:
        """The dictionary has nothing to snapshot."""
        assert not DictionaryService(load_wordnet(wordnet)).supports_snapshot
