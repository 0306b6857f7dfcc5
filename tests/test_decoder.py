"""
Unit tests for src/engine/decoder.py.

Covers:
- Each repair stage in isolation, including string-literal safety.
- decode_model_json: combined repairs, valid-JSON passthrough, DecodeError
  on empty, unparseable and scalar replies.
- extract_judgment_records: bare arrays, wrapper keys, single objects.
- validate_judgment_record: accepted shapes, normalization, rejections.
- Wire helpers: response content and token extraction for both backends.
"""

from __future__ import annotations

import json

import pytest

from src.engine.decoder import (
    RecordValidationError,
    clean_model_output,
    decode_model_json,
    extract_judgment_records,
    extract_response_content,
    filter_structural_lines,
    get_total_tokens,
    insert_missing_colons,
    remove_trailing_commas,
    slice_to_json_span,
    strip_code_fences,
    strip_plus_signs,
    unquote_booleans,
    validate_judgment_record,
)
from src.engine.errors import AnalysisError, DecodeError

from .conftest import gemini_reply, groq_reply


# ---------------------------------------------------------------------------
# Class: repair stages
# ---------------------------------------------------------------------------

class TestRepairStages:

    def test_fenced_block_body_is_returned(self):
        raw = 'Here you go:\n```json\n{"a": 1}\n```\nLet me know!'
        assert strip_code_fences(raw) == '{"a": 1}'

    def test_unterminated_opening_fence_is_removed(self):
        assert strip_code_fences("```json\n[1, 2]") == "[1, 2]"

    def test_backticks_inside_json_strings_are_not_fences(self):
        raw = '{"reason": "quotes ```print(1)``` from the comment"}'
        assert strip_code_fences(raw) == raw

    def test_fenced_block_with_backticks_in_values(self):
        raw = 'Result:\n```json\n[{"reason": "says ```x``` twice"}]\n```'
        assert strip_code_fences(raw) == '[{"reason": "says ```x``` twice"}]'

    def test_text_without_fences_is_only_stripped(self):
        assert strip_code_fences("  [1]  \n") == "[1]"

    def test_slice_drops_preamble_and_epilogue(self):
        raw = 'Sure! Here it is: [{"a": 1}] Hope this helps.'
        assert slice_to_json_span(raw) == '[{"a": 1}]'

    def test_slice_leaves_bracketed_text_alone(self):
        assert slice_to_json_span('{"a": [1]}') == '{"a": [1]}'

    def test_slice_without_brackets_is_noop(self):
        assert slice_to_json_span("no json here") == "no json here"

    def test_plus_signs_before_numbers_are_dropped(self):
        assert strip_plus_signs('{"a": +0.8, "b": [+1, +.5]}') == '{"a": 0.8, "b": [1, .5]}'

    def test_plus_signs_inside_strings_are_kept(self):
        text = '{"reason": "score: +5", "score": +0.5}'
        assert strip_plus_signs(text) == '{"reason": "score: +5", "score": 0.5}'

    def test_quoted_booleans_are_unquoted_and_lowercased(self):
        assert unquote_booleans('{"isSarcasm": "False"}') == '{"isSarcasm": false}'
        assert unquote_booleans('{"x": "TRUE", "y": 1}') == '{"x": true, "y": 1}'

    def test_quoted_boolean_words_inside_longer_strings_are_kept(self):
        text = '{"reason": "true story"}'
        assert unquote_booleans(text) == text

    def test_missing_colon_is_inserted_in_key_position(self):
        assert insert_missing_colons('{"score" 0.5}') == '{"score": 0.5}'
        assert insert_missing_colons('{"a": 1, "isSarcasm" false}') == '{"a": 1, "isSarcasm": false}'

    def test_missing_colon_repair_leaves_valid_json_alone(self):
        text = '{"a": "1", "b": [1, 2], "c": ["x", "y"]}'
        assert insert_missing_colons(text) == text

    def test_trailing_commas_are_removed(self):
        assert remove_trailing_commas("[1, 2, ]") == "[1, 2]"
        assert remove_trailing_commas('{"a": 1,\n}') == '{"a": 1}'

    def test_trailing_commas_inside_strings_are_kept(self):
        text = '{"reason": "a,]", "b": [1,]}'
        assert remove_trailing_commas(text) == '{"reason": "a,]", "b": [1]}'

    def test_structural_line_filter_drops_commentary(self):
        text = '[\n  {\n    "a": 1\n  }\nNote that this is my best guess\n]'
        assert filter_structural_lines(text) == '[\n  {\n    "a": 1\n  }\n]'

    def test_clean_model_output_chains_every_stage(self):
        raw = '```json\n[{"score": +0.8, "isSarcasm": "false", "tags": ["joy",],}]\n```'
        assert clean_model_output(raw) == '[{"score": 0.8, "isSarcasm": false, "tags": ["joy"]}]'


# ---------------------------------------------------------------------------
# Class: decode_model_json
# ---------------------------------------------------------------------------

class TestDecodeModelJson:

    def test_fenced_reply_with_prose_decodes(self):
        raw = 'Here is the analysis:\n```json\n[{"commentId": "c1", "score": 0.4}]\n```\nDone.'
        assert decode_model_json(raw) == [{"commentId": "c1", "score": 0.4}]

    def test_combined_slips_are_repaired(self):
        raw = (
            'Result:\n[{"commentId": "c1", "score": +0.8, "isSarcasm": "False", '
            '"emotions": ["joy",], "reason" null,}]'
        )
        assert decode_model_json(raw) == [{
            "commentId": "c1",
            "score": 0.8,
            "isSarcasm": False,
            "emotions": ["joy"],
            "reason": None,
        }]

    def test_valid_json_decodes_to_the_same_value(self):
        value = {
            "comments": [{
                "commentId": "c1",
                "reason": "score: +5, list [a, b,] and {x,}",
                "score": -0.5,
                "emotions": ["critical"],
                "isSarcasm": True,
            }],
        }
        assert decode_model_json(json.dumps(value)) == value
        assert decode_model_json(json.dumps(value, indent=2)) == value

    def test_quoted_code_in_evidence_survives_decoding(self):
        value = {"comments": [{
            "commentId": "c1",
            "score": 0.5,
            "axisEvidence": "quotes ```print(1)``` from the comment",
        }]}
        assert decode_model_json(json.dumps(value)) == value

    def test_commentary_lines_inside_json_fall_back_to_line_filter(self):
        raw = '[\n  {\n    "commentId": "c1",\n    "score": 0.1\n  }\nI hope this helps\n]'
        assert decode_model_json(raw) == [{"commentId": "c1", "score": 0.1}]

    def test_empty_reply_raises_decode_error(self):
        with pytest.raises(DecodeError) as exc_info:
            decode_model_json("   \n", engine="TestEngine")
        assert exc_info.value.code == "DECODE_FAILURE"
        assert exc_info.value.engine == "TestEngine"

    def test_unparseable_reply_raises_with_excerpts(self):
        with pytest.raises(DecodeError) as exc_info:
            decode_model_json("I cannot help with that request.")
        err = exc_info.value
        assert err.raw_excerpt == "I cannot help with that request."
        assert isinstance(err.cause, json.JSONDecodeError)
        assert isinstance(err, AnalysisError)

    def test_excerpts_are_bounded(self):
        raw = "x" * 2000 + "{"
        with pytest.raises(DecodeError) as exc_info:
            decode_model_json(raw)
        assert len(exc_info.value.raw_excerpt) == 500
        assert len(exc_info.value.cleaned_excerpt) <= 500

    def test_scalar_reply_is_rejected(self):
        with pytest.raises(DecodeError, match="object or array"):
            decode_model_json("42")


# ---------------------------------------------------------------------------
# Class: extract_judgment_records
# ---------------------------------------------------------------------------

class TestExtractJudgmentRecords:

    def test_bare_array_is_returned(self):
        records = [{"commentId": "a"}, {"commentId": "b"}]
        assert extract_judgment_records(records) is records

    @pytest.mark.parametrize("key", ["comments", "analyses", "results", "judgments"])
    def test_wrapper_keys_are_unwrapped(self, key):
        assert extract_judgment_records({key: [{"commentId": "a"}]}) == [{"commentId": "a"}]

    def test_first_wrapper_holding_a_list_wins(self):
        decoded = {"comments": "not a list", "results": [1], "judgments": [2]}
        assert extract_judgment_records(decoded) == [1]

    def test_single_object_becomes_one_record(self):
        decoded = {"commentId": "a", "score": 0.1}
        assert extract_judgment_records(decoded) == [decoded]


# ---------------------------------------------------------------------------
# Class: validate_judgment_record
# ---------------------------------------------------------------------------

class TestValidateJudgmentRecord:

    def _record(self, **overrides) -> dict:
        record = {
            "commentId": "c1",
            "score": 0.6,
            "emotions": ["joy"],
            "isSarcasm": False,
            "reason": "Praises the creator",
        }
        record.update(overrides)
        return record

    def test_full_record_is_normalized(self):
        item = validate_judgment_record(self._record(
            label="support",
            confidence=0.9,
            axisEvidence='"I love this"',
            replyRelation="Agree",
            speechAct="PRAISE",
        ))
        assert item == {
            "comment_id": "c1",
            "score": 0.6,
            "label": "Support",
            "confidence": 0.9,
            "is_sarcasm": False,
            "emotions": ["joy"],
            "reason": "Praises the creator",
            "axis_evidence": '"I love this"',
            "reply_relation": "agree",
            "speech_act": "praise",
        }

    def test_snake_case_keys_are_accepted(self):
        item = validate_judgment_record({"comment_id": "c2", "score": -1, "is_sarcasm": True})
        assert item["comment_id"] == "c2"
        assert item["score"] == -1.0
        assert item["is_sarcasm"] is True

    def test_integer_comment_id_is_stringified(self):
        assert validate_judgment_record(self._record(commentId=7))["comment_id"] == "7"

    def test_missing_optional_fields_get_defaults(self):
        item = validate_judgment_record({"commentId": "c1", "score": 0})
        assert item["emotions"] == ["neutral"]
        assert item["is_sarcasm"] is False
        assert item["reason"] is None
        assert item["label"] is None

    def test_unknown_emotion_tags_are_dropped(self):
        item = validate_judgment_record(self._record(emotions=["JOY", "bogus", "joy"]))
        assert item["emotions"] == ["joy"]
        item = validate_judgment_record(self._record(emotions=["bogus"]))
        assert item["emotions"] == ["neutral"]

    def test_unknown_relation_and_speech_act_are_discarded(self):
        item = validate_judgment_record(self._record(replyRelation="sideways", speechAct="poem"))
        assert item["reply_relation"] is None
        assert item["speech_act"] is None

    def test_confidence_is_clamped(self):
        assert validate_judgment_record(self._record(confidence=1.7))["confidence"] == 1.0
        assert validate_judgment_record(self._record(confidence=-2))["confidence"] == 0.0

    def test_label_without_score_is_allowed_in_axis_mode(self):
        record = {"commentId": "c1", "label": "Oppose"}
        item = validate_judgment_record(record, require_score=False)
        assert item["score"] is None
        assert item["label"] == "Oppose"

    @pytest.mark.parametrize("record", [
        "not an object",
        {"score": 0.5},
        {"commentId": "", "score": 0.5},
        {"commentId": "c1"},
        {"commentId": "c1", "score": "0.5"},
        {"commentId": "c1", "score": True},
        {"commentId": "c1", "score": 0.5, "label": "Maybe"},
        {"commentId": "c1", "score": 0.5, "isSarcasm": "yes"},
        {"commentId": "c1", "score": 0.5, "emotions": "joy"},
        {"commentId": "c1", "score": 0.5, "reason": 5},
        {"commentId": "c1", "score": 0.5, "confidence": "high"},
    ])
    def test_malformed_records_are_rejected(self, record):
        with pytest.raises(RecordValidationError):
            validate_judgment_record(record)

    def test_axis_record_needs_score_or_label(self):
        with pytest.raises(RecordValidationError, match="no score"):
            validate_judgment_record({"commentId": "c1"}, require_score=False)


# ---------------------------------------------------------------------------
# Class: wire helpers
# ---------------------------------------------------------------------------

class TestWireHelpers:

    def test_openai_compatible_content_and_tokens(self):
        body = groq_reply('{"a": 1}', total_tokens=42)
        assert extract_response_content(body, "openai_compatible") == '{"a": 1}'
        assert get_total_tokens(body) == 42

    def test_gemini_parts_are_joined(self):
        body = {
            "candidates": [{"content": {"parts": [{"text": '{"a": '}, {"text": "1}"}]}}],
            "usageMetadata": {"promptTokenCount": 10, "candidatesTokenCount": 5},
        }
        assert extract_response_content(body, "google") == '{"a": 1}'
        assert get_total_tokens(body) == 15

    def test_gemini_reply_helper_matches_wire_format(self):
        body = gemini_reply("[]", total_tokens=9)
        assert extract_response_content(body, "google") == "[]"
        assert get_total_tokens(body) == 9

    def test_unknown_envelope_raises_value_error(self):
        with pytest.raises(ValueError, match="Unrecognized API response format"):
            extract_response_content({"output": "x"}, "google")

    def test_missing_usage_counts_zero(self):
        assert get_total_tokens({"choices": []}) == 0
