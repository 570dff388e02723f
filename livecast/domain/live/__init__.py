"""
Live interaction domain logic.

Includes:
- directory: Active broadcast discovery.
- viewport: Active slot selection from scroll visibility.
- channel: Realtime channel session lifecycle.
- merger: Event merging into the chat log and counters.
- battle: Head-to-head battle scoring.
- gifting: Gift catalog, wallet snapshot and gift sending.
- playback: Media source fallback policy.
"""
