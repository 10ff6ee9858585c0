"""
Score analysis framework.

Point tables, baselines and calculators that turn nightly biometric samples into
daily recovery and sleep scores.
"""
