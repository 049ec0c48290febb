"""Services of the Lazy Trading onboarding API"""
