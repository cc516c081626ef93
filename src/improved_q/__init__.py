"""Tabular Q-learning on a small deterministic state machine.

This package bundles a 21-state environment with rewarded goal states, a
Q-learning agent with epsilon-greedy exploration and two update rules, and a
driver that runs many independently seeded trials and reports the running
reward per action of each episode.
"""
