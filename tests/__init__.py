"""Tests for the Lazy Trading onboarding API"""
