from layoffs_cleaning.cleaning import main

main()
