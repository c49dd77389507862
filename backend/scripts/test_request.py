"""Run a quick smoke request against the app's health endpoint."""

import sys
import os

# Ensure backend folder is on sys.path so `studygroups` package can be imported
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from fastapi.testclient import TestClient
from studygroups.main import app


def run_testclient():
    client = TestClient(app)
    resp = client.get('/health')
    print('STATUS:', resp.status_code)
    print('REQUEST ID:', resp.headers.get('X-Request-ID'))
    try:
        print('JSON:', resp.json())
    except ValueError:
        print('CONTENT:', resp.text)


if __name__ == '__main__':
    run_testclient()
