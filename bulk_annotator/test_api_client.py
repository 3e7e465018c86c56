"""Tests for the Gemini client. requests.post is always patched."""

import logging
from unittest.mock import MagicMock, patch

import pytest
import requests

from bulk_annotator.api_client import GeminiAnnotator, extract_candidate_text, generate_annotation


def _response(data=None, status_code=200, json_error=None):
    response = MagicMock()
    response.status_code = status_code
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = data
    return response


def _ok(text, usage=None):
    data = {'candidates': [{'content': {'parts': [{'text': text}], 'role': 'model'}}]}
    if usage:
        data['usageMetadata'] = usage
    return data


@pytest.mark.parametrize('concept,argument', [
    ('', 'animal'),
    ('cat', ''),
    (None, 'animal'),
    ('cat', None),
    ('', ''),
])
def test_empty_input_makes_no_request(concept, argument):
    with patch('bulk_annotator.api_client.requests.post') as post:
        assert generate_annotation('Opina:', concept, argument, 'key') == ''
    post.assert_not_called()


def test_returns_candidate_text():
    with patch('bulk_annotator.api_client.requests.post', return_value=_response(_ok('X'))) as post:
        assert generate_annotation('Opina:', 'cat', 'animal', 'secret') == 'X'

    post.assert_called_once()
    args, kwargs = post.call_args
    assert args[0] == 'https://generativelanguage.googleapis.com/v1beta/models/gemini-pro:generateContent'
    assert kwargs['params'] == {'key': 'secret'}
    assert kwargs['headers'] == {'Content-Type': 'application/json'}
    prompt = kwargs['json']['contents'][0]['parts'][0]['text']
    assert prompt.startswith('Opina:')
    assert 'Concept: cat' in prompt
    assert 'Argument: animal' in prompt


def test_model_and_timeout_are_used():
    client = GeminiAnnotator('k', model='gemini-1.5-flash', timeout=5)
    with patch('bulk_annotator.api_client.requests.post', return_value=_response(_ok('ok'))) as post:
        client.draw_conclusion('p', 'a', 'b')
    assert post.call_args[0][0].endswith('/models/gemini-1.5-flash:generateContent')
    assert post.call_args[1]['timeout'] == 5


@pytest.mark.parametrize('data', [
    {},
    {'candidates': []},
    {'candidates': [{}]},
    {'candidates': [{'content': {}}]},
    {'candidates': [{'content': {'parts': []}}]},
    {'candidates': [{'content': {'parts': [{}]}}]},
    {'candidates': [{'content': {'parts': [{'text': ''}]}}]},
    {'error': {'code': 400, 'message': 'API key not valid.'}},
])
def test_missing_path_returns_empty_and_logs_body(data, caplog):
    with patch('bulk_annotator.api_client.requests.post', return_value=_response(data, status_code=400)):
        with caplog.at_level(logging.WARNING):
            assert generate_annotation('p', 'cat', 'animal', 'key') == ''
    assert 'No conclusion found' in caplog.text
    assert repr(data) in caplog.text


def test_network_error_returns_empty(caplog):
    error = requests.ConnectionError('connection refused')
    with patch('bulk_annotator.api_client.requests.post', side_effect=error):
        assert generate_annotation('p', 'cat', 'animal', 'key') == ''
    assert 'connection refused' in caplog.text


def test_timeout_returns_empty():
    with patch('bulk_annotator.api_client.requests.post', side_effect=requests.Timeout('slow')):
        assert generate_annotation('p', 'cat', 'animal', 'key') == ''


def test_invalid_json_returns_empty(caplog):
    response = _response(json_error=ValueError('Expecting value'))
    with patch('bulk_annotator.api_client.requests.post', return_value=response):
        assert generate_annotation('p', 'cat', 'animal', 'key') == ''
    assert 'Failed to parse Gemini response' in caplog.text


def test_usage_stats_accumulate():
    client = GeminiAnnotator('k')
    responses = [
        _response(_ok('uno', {'promptTokenCount': 20, 'candidatesTokenCount': 8})),
        _response({}),
        _response(_ok('dos', {'promptTokenCount': 22, 'candidatesTokenCount': 9})),
    ]
    with patch('bulk_annotator.api_client.requests.post', side_effect=responses):
        assert client.draw_conclusion('p', 'a', 'b') == 'uno'
        assert client.draw_conclusion('p', 'a', 'b') == ''
        assert client.draw_conclusion('p', 'a', 'b') == 'dos'

    stats = client.get_usage_stats()
    assert stats['requests'] == 3
    assert stats['failed_requests'] == 1
    assert stats['input_tokens'] == 42
    assert stats['output_tokens'] == 17
    assert stats['total_tokens'] == 59


def test_extract_candidate_text_rejects_wrong_types():
    assert extract_candidate_text(None) is None
    assert extract_candidate_text([]) is None
    assert extract_candidate_text({'candidates': {'0': {}}}) is None
    assert extract_candidate_text({'candidates': ['text']}) is None
    assert extract_candidate_text({'candidates': [{'content': {'parts': [{'text': 3}]}}]}) is None
    assert extract_candidate_text(_ok('bien')) == 'bien'


def test_from_config_uses_configured_model_and_timeout(config):
    config.gemini_model = 'gemini-1.5-pro'
    config.gemini_timeout = None
    client = GeminiAnnotator.from_config(config)
    assert client.url == 'https://generativelanguage.googleapis.com/v1beta/models/gemini-1.5-pro:generateContent'
    assert client.api_key == 'test-key'
    assert client.timeout is None
