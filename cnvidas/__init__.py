"""CN Vidas telemedicine and health-benefits API"""
