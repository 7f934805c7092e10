"""Per-request decision trace: steps, flags and scores, kept in memory."""

import time


class Metrics:
    def __init__(self):
        self.data = {
            'started_at': time.time(),
            'steps': [],
            'flags': {},
            'scores': {}
        }

    def step(self, name, ok=True, extra=None):
        self.data['steps'].append({
            'ts': time.time(),
            'name': name,
            'ok': ok,
            'extra': extra or {}
        })

    def flag(self, key, val):
        self.data['flags'][key] = val

    def score(self, key, val):
        self.data['scores'][key] = val

    def finalize(self):
        self.data['finished_at'] = time.time()
        self.data['duration_sec'] = round(self.data['finished_at'] - self.data['started_at'], 3)
        return self.data

    def trace(self):
        """Step names and outcomes only; stable across runs."""
        return {
            'steps': [(s['name'], s['ok']) for s in self.data['steps']],
            'flags': dict(self.data['flags']),
            'scores': dict(self.data['scores']),
        }
