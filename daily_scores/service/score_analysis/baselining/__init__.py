"""
Personalized baselining for daily scores.

This package maintains rolling personal baselines (HRV, resting heart rate, sleep
duration and timing) that the score calculators compare each day against.
"""
