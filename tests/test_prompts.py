from config import normalize_language
from prompts import APPRAISAL_PROMPTS, get_appraisal_prompt, get_summary_prompt


def test_appraisal_prompt_names_language():
    assert get_appraisal_prompt("de").endswith("Please respond in de.")


def test_appraisal_prompt_mentions_multiple_angles():
    assert "3 images of the same item" in get_appraisal_prompt("en", 3)
    assert "images of the same item" not in get_appraisal_prompt("en", 1)


def test_unknown_language_falls_back_to_english():
    assert get_appraisal_prompt("it").startswith(APPRAISAL_PROMPTS["en"])
    assert get_summary_prompt("it") == get_summary_prompt("en")


def test_normalize_language():
    assert normalize_language(" FR ") == "fr"
    assert normalize_language(None) == "en"
    assert normalize_language("pt") == "en"
