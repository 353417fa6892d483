"""
Test and load harness for the remote code-runner service.

The harness submits "run this code" jobs over the runner's HTTP API, polls each
job until it reaches a terminal status, and reports latency statistics (load
mode) or pass/fail verdicts against expected output (correctness mode).

Run ``python -m runner_harness.main --help`` for the command line.
"""
