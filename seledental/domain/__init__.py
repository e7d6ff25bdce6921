"""Domain modules: appointments and the clinic calendar"""
