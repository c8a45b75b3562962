"""API Resilience Implementations.

Contains the sliding-window rate limiter and the resilient query client
that combines caching, admission control and fixed-delay retries.
Bounded Context: API Resilience
"""
