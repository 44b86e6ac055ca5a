from conftest import json_completion


def test_health(api_client):
    resp = api_client.get('/health')
    assert resp.status_code == 200
    assert resp.json() == {'status': 'ok'}


def test_quality_metrics_reflect_requests(api_client, seed, fake_completion):
    seed.settings()
    seed.client()
    seed.template()
    note = {
        'subjective': {'presentingConcerns': 'Quiet week'},
        'objective': {},
        'assessment': {},
        'plan': {},
    }
    fake_completion.queue(json_completion(note, finish_reason='stop'))
    body = {
        'freeTextInput': 'Quiet session',
        'noteType': 'progress_note',
        'noteFormat': 'SOAP',
        'clientId': 'client-1',
    }
    assert api_client.post('/generate-clinical-note', json=body).status_code == 200

    metrics = api_client.get('/ai-quality-metrics').json()
    assert metrics['totalRequests'] == 1
    assert metrics['successRate'] == 100.0
    assert metrics['avgConfidenceScore'] == 0.85


def test_prometheus_metrics_exposed(api_client, seed, fake_completion):
    seed.settings(enabled=False)
    api_client.post('/generate-section-content', json={'sectionType': 'mse', 'context': 'x'})
    resp = api_client.get('/metrics')
    assert resp.status_code == 200
    assert 'ai_generation_requests_total' in resp.text


def test_request_id_header(api_client):
    resp = api_client.get('/health', headers={'X-Request-Id': 'abc123'})
    assert resp.headers['x-request-id'] == 'abc123'
