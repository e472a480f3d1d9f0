# -*- coding: utf-8 -*-
"""Calorie tracker backend: LLM nutrition analysis with session-authenticated accounts."""
