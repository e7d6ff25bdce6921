"""Appointment booking, assignment queue and lifecycle"""
