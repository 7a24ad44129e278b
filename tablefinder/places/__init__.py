"""
Places provider integration.

Responsibilities:
- Define the provider interface the search cache and services consume.
- Talk to Google Places (New) through the async gRPC client.
- Convert provider payloads into plain ``RawPlace`` / ``RawReview`` records.
"""
