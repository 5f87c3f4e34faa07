"""Live preview services: bundler, preview document and ghost fix"""
