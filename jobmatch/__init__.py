"""Résumé-to-job keyword matching and ATS scoring service"""
