"""Prompt templates for the generative model."""
