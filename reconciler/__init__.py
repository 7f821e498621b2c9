"""Critic review reconciliation: merge, cross-show attribution, production checks, scoring"""
