from scan_items.cli import main

if __name__ == "__main__":
    main()
