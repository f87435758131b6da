"""
Test suite for the CourtEase API.

Fakes for Supabase and Midtrans live in testing.fakes and testing.conftest.
"""
