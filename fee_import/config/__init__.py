"""Configuration loading and the default class-section mapping."""
