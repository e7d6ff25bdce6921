"""Clinic calendar: civil clock, slot grid and overlap checks"""
