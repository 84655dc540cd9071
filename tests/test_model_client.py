import base64
from unittest.mock import Mock, patch

import anthropic
import httpx
import pytest

from demand_drafter.errors import ModelCallError, ResponseParseError
from demand_drafter.utils.model_client import ModelClient, backoff_delays, retry_with_backoff
from demand_drafter.utils.response_parser import parse_json_object, strip_code_fences


def text_response(text):
    return Mock(content=[Mock(type='text', text=text)])


class TestRetryWithBackoff:

    def test_default_delays(self):
        assert backoff_delays(3, 2.0, 1.5) == [2.0, 3.0]
        assert backoff_delays(1, 2.0, 1.5) == []

    def test_succeeds_after_transient_failures(self):
        func = Mock(side_effect=[ConnectionError('reset'), TimeoutError('slow'), 'ok'])
        sleep = Mock()

        result = retry_with_backoff(func, 'arg', sleep=sleep)

        assert result == 'ok'
        assert func.call_count == 3
        func.assert_called_with('arg')
        assert [c.args[0] for c in sleep.call_args_list] == [2.0, 3.0]

    def test_gives_up_after_max_attempts(self):
        func = Mock(side_effect=ConnectionError('down'))
        sleep = Mock()

        with pytest.raises(ModelCallError) as exc_info:
            retry_with_backoff(func, sleep=sleep, description='case analysis')

        assert func.call_count == 3
        assert sleep.call_count == 2
        assert exc_info.value.attempts == 3
        assert 'case analysis failed after 3 attempts' in exc_info.value.message
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    def test_bad_request_is_not_retried(self):
        request = httpx.Request('POST', 'https://api.anthropic.com/v1/messages')
        error = anthropic.BadRequestError(
            'prompt is too long', response=httpx.Response(400, request=request), body=None,
        )
        func = Mock(side_effect=error)
        sleep = Mock()

        with pytest.raises(ModelCallError) as exc_info:
            retry_with_backoff(func, sleep=sleep)

        assert func.call_count == 1
        sleep.assert_not_called()
        assert exc_info.value.attempts == 1


class TestModelClient:

    @pytest.fixture
    def anthropic_client(self):
        client = Mock()
        client.messages.create.return_value = text_response('{"heading": "Exhibit 1"}')
        return client

    def test_attachment_sent_as_document_block(self, config, anthropic_client):
        model = ModelClient(config, client=anthropic_client)

        result = model.generate('Summarize this.', attachment=b'%PDF-1.4 data', max_tokens=123)

        assert result == '{"heading": "Exhibit 1"}'
        kwargs = anthropic_client.messages.create.call_args.kwargs
        assert kwargs['model'] == config.model
        assert kwargs['max_tokens'] == 123
        document, text = kwargs['messages'][0]['content']
        assert document['type'] == 'document'
        assert document['source']['media_type'] == 'application/pdf'
        assert base64.b64decode(document['source']['data']) == b'%PDF-1.4 data'
        assert text == {'type': 'text', 'text': 'Summarize this.'}

    def test_plain_prompt(self, config, anthropic_client):
        ModelClient(config, client=anthropic_client).generate('Hello', system='Be brief.')

        kwargs = anthropic_client.messages.create.call_args.kwargs
        assert kwargs['messages'] == [{'role': 'user', 'content': 'Hello'}]
        assert kwargs['system'] == 'Be brief.'
        assert kwargs['max_tokens'] == config.extraction_max_tokens

    def test_empty_response_is_retried(self, config, anthropic_client):
        anthropic_client.messages.create.side_effect = [text_response('  '), text_response('second try')]

        assert ModelClient(config, client=anthropic_client).generate('Hello') == 'second try'
        assert anthropic_client.messages.create.call_count == 2

    def test_uses_configured_retry_policy(self, config, anthropic_client):
        config.retry_delay = 2.0
        anthropic_client.messages.create.side_effect = ConnectionError('down')

        with patch('demand_drafter.utils.model_client.time.sleep') as sleep:
            with pytest.raises(ModelCallError):
                ModelClient(config, client=anthropic_client).generate('Hello')

        assert anthropic_client.messages.create.call_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [2.0, 3.0]


class TestResponseParser:

    def test_strips_fences(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_code_fences('```\n{"a": 1}```') == '{"a": 1}'
        assert strip_code_fences('{"a": 1}') == '{"a": 1}'

    def test_parses_object_wrapped_in_prose(self):
        assert parse_json_object('Here you go:\n{"expenses": 10}\nThanks!') == {'expenses': 10}

    @pytest.mark.parametrize('raw', ['', 'no json here', '{"broken": ', '[1, 2]'])
    def test_rejects_non_objects(self, raw):
        with pytest.raises(ResponseParseError):
            parse_json_object(raw)
