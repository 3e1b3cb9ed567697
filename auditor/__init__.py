"""Sui Move audit agent: audits Move packages and answers issue threads from a GitHub Action."""
