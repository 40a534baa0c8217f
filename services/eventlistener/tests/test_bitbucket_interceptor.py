"""Tests for the Bitbucket signature interceptor."""

import hashlib
import hmac

import pytest

from eventsink.interceptors import DispatchContext
from eventsink.interceptors.bitbucket import BitbucketInterceptor
from eventsink.models.interceptor import Code, InterceptorRequest

BODY = '{"push":{"changes":[]}}'
SECRET_REF = {'secretName': 'github-secret', 'secretKey': 'token'}


def sign(body, secret='sekrit'):
    return 'sha1=' + hmac.new(secret.encode(), body.encode(), hashlib.sha1).hexdigest()


def bitbucket_request(header, params):
    return InterceptorRequest(body=BODY, header=header, interceptor_params=params)


@pytest.fixture
def interceptor(secret_cache):
    return BitbucketInterceptor(secret_cache)


class TestBitbucketInterceptor:
    def test_valid_signature_and_event(self, interceptor):
        request = bitbucket_request(
            {'X-Hub-Signature': [sign(BODY)], 'X-Event-Key': ['repo:push']},
            {'secretRef': SECRET_REF, 'eventTypes': ['repo:push']},
        )
        assert interceptor.process(DispatchContext(5), request).continue_

    def test_missing_signature(self, interceptor):
        response = interceptor.process(DispatchContext(5), bitbucket_request({}, {'secretRef': SECRET_REF}))
        assert response.status.code == Code.INVALID_ARGUMENT
        assert response.status.message == 'no X-Hub-Signature header set'

    def test_wrong_signature(self, interceptor):
        request = bitbucket_request({'X-Hub-Signature': [sign(BODY, 'other')]}, {'secretRef': SECRET_REF})
        response = interceptor.process(DispatchContext(5), request)
        assert response.status.code == Code.FAILED_PRECONDITION
        assert response.status.message == 'payload signature check failed'

    def test_signature_checked_before_event_type(self, interceptor):
        request = bitbucket_request(
            {'X-Event-Key': ['pullrequest:created']},
            {'secretRef': SECRET_REF, 'eventTypes': ['repo:push']},
        )
        response = interceptor.process(DispatchContext(5), request)
        assert response.status.message == 'no X-Hub-Signature header set'

    def test_event_type_not_allowed(self, interceptor):
        request = bitbucket_request({'X-Event-Key': ['pullrequest:created']}, {'eventTypes': ['repo:push']})
        response = interceptor.process(DispatchContext(5), request)
        assert response.status.code == Code.FAILED_PRECONDITION
        assert response.status.message == 'event type pullrequest:created is not allowed'

    def test_missing_secret(self, interceptor):
        request = bitbucket_request(
            {'X-Hub-Signature': [sign(BODY)]},
            {'secretRef': {'secretName': 'absent', 'secretKey': 'token'}},
        )
        response = interceptor.process(DispatchContext(5), request)
        assert response.status.message.startswith('error getting secret:')
