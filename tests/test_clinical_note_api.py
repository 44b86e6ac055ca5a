import time

from clinical_ai.db import models as db_models

from conftest import FakeResponse, json_completion, tool_completion

NOTE = {
    'subjective': {'presentingConcerns': 'Feels hopeless'},
    'objective': {'appearance': 'Tired'},
    'assessment': {'clinicalImpression': 'Depressed mood'},
    'plan': {'nextSteps': 'Safety plan'},
}


def _payload(**overrides):
    body = {
        'freeTextInput': 'Client says I want to die and feels hopeless.',
        'noteType': 'progress_note',
        'noteFormat': 'SOAP',
        'clientId': 'client-1',
    }
    body.update(overrides)
    return body


def _seed_ready(seed, **settings):
    seed.settings(**settings)
    seed.client()
    seed.template()


def test_generates_note_with_keyword_risk_flags(api_client, seed, fake_completion, db_session):
    _seed_ready(seed)
    fake_completion.queue(json_completion(NOTE, finish_reason='stop'))

    resp = api_client.post('/generate-clinical-note', json=_payload())
    assert resp.status_code == 200
    data = resp.json()
    assert data['success'] is True
    assert data['content'] == NOTE
    assert data['riskFlags'] == ['suicidal_ideation']
    assert data['riskSeverity'] == 'low'
    assert data['riskRationale'] == ''
    assert 'riskFlags' not in data['content']

    metadata = data['metadata']
    assert metadata['ai_generated'] is True
    assert metadata['ai_model_used'] == 'google/gemini-2.5-flash'
    assert metadata['ai_confidence_score'] == 0.85
    assert metadata['requires_review'] is False

    assert len(fake_completion.calls) == 1
    body = fake_completion.calls[0]['json']
    assert body['response_format'] == {'type': 'json_object'}
    assert 'Jane Doe' in body['messages'][0]['content']

    log = db_session.query(db_models.AIRequestLog).one()
    assert log.success is True
    assert log.request_type == 'clinical_note'
    assert log.confidence_score == 0.85


def test_length_finish_below_threshold_requires_review(api_client, seed, fake_completion):
    _seed_ready(seed, minimum_confidence_threshold=0.8)
    fake_completion.queue(json_completion(NOTE, finish_reason='length'))

    data = api_client.post('/generate-clinical-note', json=_payload()).json()
    assert data['metadata']['ai_confidence_score'] == 0.70
    assert data['metadata']['requires_review'] is True


def test_enhanced_risk_assessment_makes_second_call(api_client, seed, fake_completion):
    _seed_ready(seed, risk_assessment_enabled=True)
    fake_completion.queue(json_completion(NOTE))
    fake_completion.queue(
        tool_completion(
            ('assess_clinical_risks', {'risks': ['suicidal_ideation'], 'severity': 'high', 'rationale': 'Explicit statement.'})
        )
    )

    data = api_client.post('/generate-clinical-note', json=_payload()).json()
    assert data['riskFlags'] == ['suicidal_ideation']
    assert data['riskSeverity'] == 'high'
    assert data['riskRationale'] == 'Explicit statement.'
    assert len(fake_completion.calls) == 2


def test_enhanced_risk_failure_keeps_the_note(api_client, seed, fake_completion):
    _seed_ready(seed, risk_assessment_enabled=True)
    fake_completion.queue(json_completion(NOTE))
    fake_completion.queue(FakeResponse(status_code=500, payload=None, text='boom', reason='Server Error'))

    resp = api_client.post('/generate-clinical-note', json=_payload())
    assert resp.status_code == 200
    data = resp.json()
    assert data['content'] == NOTE
    assert data['riskFlags'] == ['suicidal_ideation']
    assert data['riskRationale'] == 'Basic keyword-based assessment (AI unavailable)'


def test_malformed_provider_body_is_500_without_content(api_client, seed, fake_completion, db_session):
    _seed_ready(seed)
    fake_completion.queue(
        FakeResponse(payload={'choices': [{'finish_reason': 'stop', 'message': {'content': '{not json'}}]})
    )

    resp = api_client.post('/generate-clinical-note', json=_payload())
    assert resp.status_code == 500
    data = resp.json()
    assert 'error' in data
    assert 'content' not in data

    log = db_session.query(db_models.AIRequestLog).one()
    assert log.success is False
    assert 'Failed to parse AI response as JSON' in log.error_message


def test_disabled_ai_is_400(api_client, seed, fake_completion):
    _seed_ready(seed, enabled=False)
    resp = api_client.post('/generate-clinical-note', json=_payload())
    assert resp.status_code == 400
    assert resp.json() == {'error': 'AI is not enabled'}
    assert fake_completion.calls == []


def test_missing_fields_are_400(api_client, seed, fake_completion):
    _seed_ready(seed)
    resp = api_client.post('/generate-clinical-note', json=_payload(noteType=None))
    assert resp.status_code == 400
    assert 'noteType' in resp.json()['error']
    assert fake_completion.calls == []


def test_both_text_sources_rejected(api_client, seed, fake_completion):
    _seed_ready(seed)
    resp = api_client.post('/generate-clinical-note', json=_payload(sessionTranscript='Therapist: hi'))
    assert resp.status_code == 400
    assert fake_completion.calls == []


def test_missing_template_is_500(api_client, seed, fake_completion):
    seed.settings()
    seed.client()
    resp = api_client.post('/generate-clinical-note', json=_payload())
    assert resp.status_code == 500
    assert resp.json() == {'error': 'No template found for progress_note in SOAP format'}
    assert fake_completion.calls == []


def test_html_is_stripped_from_input(api_client, seed, fake_completion):
    _seed_ready(seed)
    fake_completion.queue(json_completion(NOTE))
    api_client.post('/generate-clinical-note', json=_payload(freeTextInput='<b>Low</b> mood'))
    user_prompt = fake_completion.calls[0]['json']['messages'][1]['content']
    assert user_prompt.endswith('Low mood')


def test_preflight_is_open(api_client):
    resp = api_client.options('/generate-clinical-note')
    assert resp.status_code == 200
    assert resp.headers['access-control-allow-origin'] == '*'
    assert resp.content == b''


def test_browser_preflight_reaches_options_route(api_client):
    resp = api_client.options(
        '/generate-clinical-note',
        headers={
            'Origin': 'https://app.example',
            'Access-Control-Request-Method': 'POST',
            'Access-Control-Request-Headers': 'content-type',
        },
    )
    assert resp.status_code == 200
    assert resp.content == b''
    assert resp.headers['access-control-allow-origin'] == '*'
    assert 'content-type' in resp.headers['access-control-allow-headers']


def test_cross_origin_post_carries_cors_header(api_client, seed, fake_completion):
    _seed_ready(seed)
    fake_completion.queue(json_completion(NOTE))
    resp = api_client.post('/generate-clinical-note', json=_payload(), headers={'Origin': 'https://app.example'})
    assert resp.status_code == 200
    assert resp.headers['access-control-allow-origin'] == '*'


def test_soap_output_schema_is_sent_to_provider(api_client, seed, fake_completion):
    _seed_ready(seed)
    fake_completion.queue(json_completion(NOTE))
    api_client.post('/generate-clinical-note', json=_payload())
    system_prompt = fake_completion.calls[0]['json']['messages'][0]['content']
    assert 'Output Schema' in system_prompt
    assert 'presentingConcerns' in system_prompt


def test_note_missing_required_sections_is_500(api_client, seed, fake_completion, db_session):
    _seed_ready(seed)
    fake_completion.queue(json_completion({'anything': 'goes'}))

    resp = api_client.post('/generate-clinical-note', json=_payload())
    assert resp.status_code == 500
    data = resp.json()
    assert data['error'].startswith('AI response is missing required fields')
    assert 'subjective' in data['error']
    assert 'content' not in data

    log = db_session.query(db_models.AIRequestLog).one()
    assert log.success is False
    assert 'missing required fields' in log.error_message


def test_note_missing_nested_required_field_is_500(api_client, seed, fake_completion):
    _seed_ready(seed)
    note = dict(NOTE, subjective={'mood': 'low'})
    fake_completion.queue(json_completion(note))

    resp = api_client.post('/generate-clinical-note', json=_payload())
    assert resp.status_code == 500
    assert 'subjective.presentingConcerns' in resp.json()['error']


def test_dap_note_is_not_held_to_soap_schema(api_client, seed, fake_completion):
    seed.settings()
    seed.client()
    seed.template(name='DAP Note', note_format='DAP')
    fake_completion.queue(json_completion({'data': 'Attended', 'assessment': 'Stable', 'plan': 'Weekly'}))

    resp = api_client.post('/generate-clinical-note', json=_payload(noteFormat='DAP'))
    assert resp.status_code == 200
    assert resp.json()['content']['data'] == 'Attended'
    assert 'Output Schema' not in fake_completion.calls[0]['json']['messages'][0]['content']


def test_html_provider_body_is_500_parse_error(api_client, seed, fake_completion):
    _seed_ready(seed)
    fake_completion.queue(FakeResponse(status_code=200, payload=None, text='<html>'))

    resp = api_client.post('/generate-clinical-note', json=_payload())
    assert resp.status_code == 500
    data = resp.json()
    assert data['error'].startswith('Failed to parse AI response as JSON')
    assert 'content' not in data


def test_soap_clinical_note_with_keyword_risk(api_client, seed, fake_completion):
    seed.settings(risk_assessment_enabled=False)
    seed.client()
    seed.template(name='SOAP Clinical Note', note_type='clinical_note', note_format='SOAP')
    fake_completion.queue(json_completion(NOTE))

    resp = api_client.post(
        '/generate-clinical-note',
        json=_payload(
            freeTextInput='Client reports wanting to end my life after job loss',
            noteType='clinical_note',
            noteFormat='SOAP',
        ),
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data['riskFlags'] == ['suicidal_ideation']
    assert data['riskSeverity'] == 'low'
    assert len(fake_completion.calls) == 1


def test_ampersand_and_less_than_reach_prompt_verbatim(api_client, seed, fake_completion):
    _seed_ready(seed)
    fake_completion.queue(json_completion(NOTE))
    text = 'Client & partner argue; mood < baseline'
    api_client.post('/generate-clinical-note', json=_payload(freeTextInput=text))
    user_prompt = fake_completion.calls[0]['json']['messages'][1]['content']
    assert user_prompt.endswith(text)
    assert '&amp;' not in user_prompt
    assert '&lt;' not in user_prompt


def test_processing_time_covers_only_the_completion(api_client, seed, fake_completion, store, monkeypatch, db_session):
    _seed_ready(seed)
    fake_completion.queue(json_completion(NOTE))
    real_get_client = store.get_client

    def slow_get_client(client_id):
        time.sleep(0.3)
        return real_get_client(client_id)

    monkeypatch.setattr(store, 'get_client', slow_get_client)

    data = api_client.post('/generate-clinical-note', json=_payload()).json()
    assert data['metadata']['ai_processing_time_ms'] < 300

    log = db_session.query(db_models.AIRequestLog).one()
    assert log.processing_time_ms >= 300
