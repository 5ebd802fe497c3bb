'''
TutorLedger Backend: per-student fee balances and monthly reconciliation
for independent tutors.
'''
