"""
Pytest configuration and fixtures.

The generative model is replaced by FakeModelClient, which answers from
scripted responses keyed by the attached file bytes, so no test touches the
network.
"""

import json
import threading

import pytest

from demand_drafter.config import Config
from demand_drafter.models import ClientInfo, Exhibit
from demand_drafter.utils.file_parser import UploadedFile


class FakeModelClient:
    """Stands in for ModelClient.generate()."""

    def __init__(self, extractions=None, analysis=None, enhancement='Enhanced text.'):
        # bytes -> str response or Exception to raise
        self.extractions = extractions or {}
        self.analysis = analysis
        self.enhancement = enhancement
        self.calls = []
        self._lock = threading.Lock()

    def generate(self, prompt, attachment=None, media_type='application/pdf',
                 max_tokens=None, system=None, description='model call'):
        with self._lock:
            self.calls.append({'prompt': prompt, 'attachment': attachment, 'description': description})

        if 'EXHIBIT SUMMARIES' in prompt:
            response = self.analysis
        elif 'Enhanced content:' in prompt:
            response = self.enhancement
        else:
            response = self.extractions.get(attachment)

        if isinstance(response, Exception):
            raise response
        if response is None:
            raise AssertionError(f'No scripted response for {description}')
        return response

    @property
    def analysis_prompts(self):
        return [c['prompt'] for c in self.calls if 'EXHIBIT SUMMARIES' in c['prompt']]


def extraction_response(heading, summary='Summary.', expenses=0, client_info=None):
    return json.dumps({
        'heading': heading,
        'summary': summary,
        'expenses': expenses,
        'clientInfo': client_info,
    })


@pytest.fixture
def config():
    """Settings with a credential and no retry delay."""
    return Config(anthropic_api_key='test-key', retry_delay=0.0)


@pytest.fixture
def analysis_payload():
    return {
        'natureOfClaim': 'Motor vehicle collision.',
        'facts': 'On January 2, 2023 the defendant ran a red light.',
        'liability': 'The defendant failed to yield.',
        'injuries': ['Cervical strain', 'Lumbar sprain'],
        'damages': {
            'people': [
                {
                    'name': 'Jane Doe',
                    'specialDamages': {
                        'total': 500,
                        'items': [{'description': 'City ER', 'amount': 500}],
                    },
                    'generalDamages': {'total': 10000, 'items': ['Pain and suffering']},
                }
            ],
            'totalSettlementDemand': 10500,
        },
        'clientInfo': {
            'clientName': None,
            'policyNumber': None,
            'claimNumber': None,
            'dateOfLoss': None,
        },
    }


@pytest.fixture
def make_upload():
    def _make(name, data=None):
        return UploadedFile(file_name=name, data=data if data is not None else f'%PDF-1.4 {name}'.encode())
    return _make


@pytest.fixture
def existing_exhibits():
    return [
        Exhibit(
            file_name='a.pdf',
            heading='Exhibit 1: Police Report',
            summary='Officer found the defendant at fault.',
            expenses=0.0,
            client_info=ClientInfo(client_name='Jane Doe', date_of_loss='01/02/2023'),
            processed_at='2024-01-01T10:00:00',
            file_hash='abc123',
        ),
        Exhibit(
            file_name='b.pdf',
            heading='Exhibit 2: ER Bill',
            summary='Emergency room visit, $1,200 billed.',
            expenses=1200.0,
            client_info=ClientInfo(client_name='Jane Doe', claim_number='CLM-9'),
            processed_at='2024-01-01T10:00:05',
            file_hash='def456',
        ),
    ]


@pytest.fixture
def extraction_json():
    return extraction_response


@pytest.fixture
def fake_client():
    return FakeModelClient


@pytest.fixture
def letter_data(analysis_payload):
    """Letter payload as the editor posts it for export."""
    analysis = dict(analysis_payload)
    return {
        'attorney': {
            'name': 'Alex Smith',
            'title': 'Attorney at Law',
            'specialization': 'Personal Injury',
            'address': '100 Main Street, Springfield',
            'phone': '555-0100',
            'fax': '555-0101',
        },
        'insuranceCompany': {
            'name': 'Acme Mutual Insurance',
            'address': 'PO Box 1, Springfield',
            'attention': 'Claims Department',
        },
        'caseInfo': {
            'client': 'Jane Doe',
            'dateOfLoss': '01/02/2023',
            'policyNumber': 'POL-1',
        },
        'totalMedicalExpenses': 1700,
        'apiData': {'globalAnalysis': analysis},
    }
