"""Sigma LMS: lessons, courses and quizzes served from Contentful."""
