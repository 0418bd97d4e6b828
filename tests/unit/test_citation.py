import re

from sheets.citation import join_citation, normalize_citation, rebuild_ref, respell_title


def test_normalize_splits_title_and_locator():
    c = normalize_citation("  Genesis   1:1 ")
    assert c.title_term == "Genesis"
    assert c.locator_suffix == "1:1"
    assert c.head_term is None


def test_normalize_keeps_commentary_head():
    c = normalize_citation("Kosef Mishneh on Mishneh Torah, Gifts to the Poor 7:3")
    assert c.title_term == "Kosef Mishneh on Mishneh Torah, Gifts to the Poor"
    assert c.locator_suffix == "7:3"
    assert c.head_term == "Kosef Mishneh"


def test_normalize_talmud_page_range():
    c = normalize_citation("Berakhot 64a:1-6")
    assert c.title_term == "Berakhot"
    assert c.locator_suffix == "64a:1-6"


def test_normalize_without_locator_is_total():
    c = normalize_citation("Radbaz on the Rambam")
    assert c.title_term == "Radbaz on the Rambam"
    assert c.locator_suffix is None
    assert c.head_term == "Radbaz"

    empty = normalize_citation("")
    assert empty.title_term == ""
    assert empty.locator_suffix is None


def test_respell_replaces_only_the_misspelled_head():
    c = normalize_citation("Kosef Mishneh on Mishneh Torah, Gifts to the Poor 7:3")
    assert respell_title(c, "Kessef Mishneh") == "Kessef Mishneh on Mishneh Torah, Gifts to the Poor"

    ref = rebuild_ref(c, "Kessef Mishneh")
    assert re.search(r"Ke(s|ss)ef Mishneh", ref)
    assert ref.endswith("Gifts to the Poor 7:3")


def test_respell_takes_full_canonical_title_when_it_matches_the_whole_term():
    c = normalize_citation("Genessis 1:1")
    assert rebuild_ref(c, "Genesis") == "Genesis 1:1"


def test_join_citation():
    assert join_citation("Exodus", "3:14") == "Exodus 3:14"
    assert join_citation(" Exodus ", None) == "Exodus"
