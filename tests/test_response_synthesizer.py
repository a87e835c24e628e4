import pytest

from phonepixie import fallback_renderer
from phonepixie.explanations import GENERIC_EXPLANATION, lookup_explanation
from phonepixie.models import IntentParameters, QueryIntent
from phonepixie.query_engine import CandidateSet
from phonepixie.response_synthesizer import ResponseSynthesizer, enumerated_numbers, is_apologetic, serialize_entries


def intent(kind, query="", **params):
    return QueryIntent(type=kind, confidence=80, parameters=IntentParameters(query=query, **params))


@pytest.fixture
def three(phones):
    return CandidateSet.build(phones[:3])


def test_search_fallback_enumerates_exactly_n(prompts_dir, three):
    response = ResponseSynthesizer(None, prompts_dir).synthesize(intent("search", "best phone"), three)
    assert enumerated_numbers(response.message) == [1, 2, 3]
    assert response.type == "search"
    assert response.source == "fallback"
    assert response.phones is three


def test_generated_search_answer_is_used_when_valid(prompts_dir, scripted_generator, three):
    lines = ["Here are three great picks for you:"]
    for position, entry in enumerate(three, start=1):
        lines.append(f"**{position}. {entry.model}** - strong all-rounder with a solid battery.")
    generator = scripted_generator(["\n".join(lines)])
    response = ResponseSynthesizer(generator, prompts_dir).synthesize(intent("search", "best phone"), three)
    assert response.source == "model"
    assert response.message.startswith("Here are three great picks")
    prompt = generator.calls[0]
    assert "EXACTLY 3 phones" in prompt
    for entry in three:
        assert entry.model in prompt


@pytest.mark.parametrize(
    "reply",
    [
        "Too short.",
        "1. Only one phone is listed here even though there were three candidates to show.",
    ],
)
def test_invalid_search_generation_falls_back(prompts_dir, scripted_generator, three, reply):
    response = ResponseSynthesizer(scripted_generator([reply]), prompts_dir).synthesize(intent("search"), three)
    assert response.source == "fallback"
    assert response.message == fallback_renderer.render_search(three.entries)


def test_generation_error_falls_back(prompts_dir, scripted_generator, three):
    generator = scripted_generator(error=RuntimeError("transport closed"))
    response = ResponseSynthesizer(generator, prompts_dir).synthesize(intent("compare"), three)
    assert response.source == "fallback"
    assert response.message == fallback_renderer.render_compare(three.entries)
    assert response.phones is three


def test_empty_search_suggests_relaxing(prompts_dir):
    response = ResponseSynthesizer(None, prompts_dir).synthesize(intent("search", budget=5000), CandidateSet())
    assert "couldn't find" in response.message
    assert "relaxing" in response.message
    assert len(response.phones) == 0


def test_compare_needs_two_phones(prompts_dir, phones):
    one = CandidateSet.build(phones[:1])
    response = ResponseSynthesizer(None, prompts_dir).synthesize(
        intent("compare", models=["iphone 999", "samsung m35"]), one
    )
    assert response.phones is None
    assert "iphone 999" in response.message
    assert "couldn't find" in response.message


def test_details_missing_phone(prompts_dir):
    response = ResponseSynthesizer(None, prompts_dir).synthesize(intent("details", models=["pixel 99"]), CandidateSet())
    assert response.phones is None
    assert "pixel 99" in response.message


def test_details_rejects_short_generation(prompts_dir, scripted_generator, phones):
    single = CandidateSet.build(phones[:1])
    response = ResponseSynthesizer(scripted_generator(["A nice phone."]), prompts_dir).synthesize(
        intent("details"), single
    )
    assert response.message == fallback_renderer.render_details(phones[0])
    assert response.phones is single


def test_explain_uses_table_without_generation(prompts_dir, scripted_generator):
    generator = scripted_generator(["should not be used"])
    response = ResponseSynthesizer(generator, prompts_dir).synthesize(intent("explain", "What is OIS?"))
    assert response.source == "table"
    assert "Optical Image Stabilization" in response.message
    assert generator.calls == []
    assert response.phones is None


def test_explain_covers_two_terms_in_table_order(prompts_dir):
    message = ResponseSynthesizer(None, prompts_dir).synthesize(intent("explain", "Difference between EIS and OIS")).message
    assert message == lookup_explanation("Difference between EIS and OIS")
    assert message.index("Optical") < message.index("Electronic")


def test_explain_rejects_apologetic_generation(prompts_dir, scripted_generator):
    reply = "I'm sorry, I don't know much about that particular phone technology, unfortunately."
    response = ResponseSynthesizer(scripted_generator([reply]), prompts_dir).synthesize(intent("explain", "What is LTPO?"))
    assert response.message == GENERIC_EXPLANATION


@pytest.mark.parametrize(
    "text, expected",
    [
        ("I'm sorry, I cannot provide details on that phone.", True),
        ("I’m not sure, but the Pixel might have OIS.", True),
        ("As an AI, I am unable to compare those models.", True),
        ("I apologize for the confusion.", True),
        ("You can't upgrade RAM later, so pick 8GB.", False),
        ("Wifi cannot reach 5G speeds.", False),
        ("OIS keeps photos sharp when your hands shake.", False),
    ],
)
def test_apology_detection(text, expected):
    assert is_apologetic(text) is expected


def test_general_routes(prompts_dir, scripted_generator):
    synthesizer = ResponseSynthesizer(scripted_generator(error=RuntimeError("down")), prompts_dir)
    assert synthesizer.synthesize(intent("general", "")).message == fallback_renderer.CLARIFICATION_MESSAGE
    assert synthesizer.synthesize(intent("general", "Hello")).message == fallback_renderer.CAPABILITIES_MESSAGE
    fallback = synthesizer.synthesize(intent("general", "Is it a good time to buy?"))
    assert fallback.message == fallback_renderer.GENERAL_FALLBACK_MESSAGE
    assert fallback.type == "general"


def test_refusal_intents_have_no_template(prompts_dir):
    with pytest.raises(ValueError):
        ResponseSynthesizer(None, prompts_dir).synthesize(intent("adversarial"))


def test_fallback_rendering_is_idempotent(phones):
    entries = phones[:3]
    assert fallback_renderer.render_search(entries, 40000) == fallback_renderer.render_search(entries, 40000)
    assert fallback_renderer.render_compare(entries) == fallback_renderer.render_compare(entries)
    assert fallback_renderer.render_details(entries[0]) == fallback_renderer.render_details(entries[0])


def test_fallback_uses_indian_price_format(phones):
    text = fallback_renderer.render_search(phones[:1], 150000)
    assert "₹19,999" in text
    assert "under ₹1,50,000" in text


def test_compare_fallback_has_decision_section(phones):
    text = fallback_renderer.render_compare(phones[:2])
    for entry in phones[:2]:
        assert f"**Choose {entry.model} if you**" in text
    assert "| **Price** |" in text


def test_serialized_candidates_keep_raw_values(phones):
    payload = serialize_entries(phones[:2])
    assert '"price": 19999.0' in payload
    assert "Samsung Galaxy S21 FE 5G" in payload
    assert "₹34,999" in payload
